"""
Inventario compartido de la granja.

Es el único objeto con estado mutable compartido entre agentes, por eso cada
operación verifica y modifica dentro de una misma sección crítica.
"""

import threading
from typing import Dict, Optional

from .catalog import ItemType


class Inventory:
    """
    Libro de inventario: cantidades por insumo, saldo y capacidad total.

    Las operaciones que fallan retornan False sin modificar nada. Nunca se
    deja una cantidad o un saldo negativo.
    """

    def __init__(self, capacity: int = 100, balance: float = 0.0,
                 initial_stock: Optional[Dict[ItemType, int]] = None):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if balance < 0:
            raise ValueError("balance must not be negative")

        self._lock = threading.RLock()
        self.capacity = capacity
        self._balance = float(balance)
        self._items: Dict[ItemType, int] = {item: 0 for item in ItemType}

        for item, quantity in (initial_stock or {}).items():
            if not self.add(item, quantity):
                raise ValueError(f"initial stock of {item.name} does not fit in capacity {capacity}")

    # ========== CANTIDADES ==========

    def add(self, item: ItemType, quantity: int) -> bool:
        """Agrega unidades si caben en la capacidad total"""
        with self._lock:
            if quantity <= 0:
                return False
            if self._total() + quantity > self.capacity:
                return False
            self._items[item] += quantity
            return True

    def remove(self, item: ItemType, quantity: int) -> bool:
        """Retira unidades si hay suficientes"""
        with self._lock:
            if quantity <= 0:
                return False
            if self._items[item] < quantity:
                return False
            self._items[item] -= quantity
            return True

    def take_up_to(self, item: ItemType, quantity: int) -> int:
        """Retira hasta `quantity` unidades y retorna cuántas se retiraron"""
        with self._lock:
            taken = min(max(0, quantity), self._items[item])
            self._items[item] -= taken
            return taken

    def has(self, item: ItemType, quantity: int = 1) -> bool:
        with self._lock:
            return self._items[item] >= quantity

    def quantity(self, item: ItemType) -> int:
        with self._lock:
            return self._items[item]

    def total(self) -> int:
        with self._lock:
            return self._total()

    def free_capacity(self) -> int:
        with self._lock:
            return self.capacity - self._total()

    def is_full(self) -> bool:
        return self.free_capacity() <= 0

    def _total(self) -> int:
        return sum(self._items.values())

    # ========== SALDO ==========

    @property
    def balance(self) -> float:
        with self._lock:
            return self._balance

    def spend(self, amount: float) -> bool:
        """Descuenta del saldo si alcanza"""
        with self._lock:
            if amount < 0 or amount > self._balance:
                return False
            self._balance = round(self._balance - amount, 2)
            return True

    def credit(self, amount: float) -> bool:
        """Acredita un pago al saldo"""
        with self._lock:
            if amount < 0:
                return False
            self._balance = round(self._balance + amount, 2)
            return True

    # ========== CONSULTAS ==========

    def snapshot(self) -> Dict:
        """Copia consistente del inventario para difusión"""
        with self._lock:
            return {
                'items': {item.name: qty for item, qty in self._items.items()},
                'total': self._total(),
                'capacity': self.capacity,
                'balance': self._balance,
            }

    def __repr__(self):
        return f"<Inventory total={self.total()}/{self.capacity} balance={self.balance:.2f}>"
