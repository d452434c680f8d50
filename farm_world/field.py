"""
Estado de un campo y simulador de ticks.

El simulador es una transición de estado determinista dado el generador
aleatorio: nunca bloquea ni envía mensajes. Retorna las solicitudes que el
campo debe emitir y el agente del campo se encarga de enviarlas.
"""

import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .catalog import CropType, DiseaseType

# Umbrales de solicitud
SCAN_THRESHOLD = 20
WATER_THRESHOLD = 30
GROWTH_MOISTURE_MIN = 30
GROWTH_HEALTH_MIN = 50
HARVEST_READY = 100

# Efecto de un tratamiento exitoso
TREATMENT_HEALTH_RESTORE = 30


def clamp(value: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, value))


@dataclass
class FieldState:
    """Estado de un campo de cultivo"""
    field_id: int
    crop_type: CropType
    moisture: int = 80
    health: int = 100
    scan_level: int = 100
    growth: int = 0
    disease: Optional[DiseaseType] = None

    # Solicitudes ya enviadas (se limpian solo con el mensaje de finalización)
    scan_requested: bool = False
    water_requested: bool = False
    diagnosis_requested: bool = False
    harvest_requested: bool = False

    harvests: int = 0

    # Multiplicador de pérdida de agua fijado por el clima
    evaporation: float = 1.0

    def __post_init__(self):
        self.moisture = clamp(self.moisture)
        self.health = clamp(self.health)
        self.scan_level = clamp(self.scan_level)
        self.growth = clamp(self.growth)

    # ========== PREDICADOS ==========

    @property
    def needs_scan(self) -> bool:
        return self.scan_level < SCAN_THRESHOLD

    @property
    def needs_water(self) -> bool:
        return self.moisture < WATER_THRESHOLD

    @property
    def needs_treatment(self) -> bool:
        return self.disease is not None

    @property
    def is_ready_for_harvest(self) -> bool:
        return self.growth >= HARVEST_READY

    @property
    def water_needed(self) -> int:
        return 100 - self.moisture

    # ========== MUTACIONES ==========

    def apply_scan(self):
        """Escaneo completado: el nivel vuelve a 100"""
        self.scan_level = 100
        self.scan_requested = False

    def apply_water(self, amount: int):
        """Riego completado"""
        self.moisture = clamp(self.moisture + max(0, amount))
        self.water_requested = False

    def apply_weather_moisture(self, bonus: int):
        """Lluvia: suma humedad sin tocar las solicitudes pendientes"""
        self.moisture = clamp(self.moisture + max(0, bonus))

    def set_evaporation(self, rate: float):
        self.evaporation = max(0.0, rate)

    def apply_treatment(self):
        """Tratamiento completado: se elimina la enfermedad y se recupera salud"""
        self.disease = None
        self.health = clamp(self.health + TREATMENT_HEALTH_RESTORE)
        self.diagnosis_requested = False

    def apply_harvest(self, new_crop: Optional[CropType] = None):
        """Cosecha completada: el crecimiento vuelve a 0 (opcionalmente se replanta)"""
        self.growth = 0
        self.harvests += 1
        self.harvest_requested = False
        if new_crop is not None:
            self.crop_type = new_crop

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field_id': self.field_id,
            'crop_type': self.crop_type.name,
            'moisture': self.moisture,
            'health': self.health,
            'scan_level': self.scan_level,
            'growth': self.growth,
            'disease': self.disease.name if self.disease else None,
            'needs_scan': self.needs_scan,
            'needs_water': self.needs_water,
            'needs_treatment': self.needs_treatment,
            'ready_for_harvest': self.is_ready_for_harvest,
            'harvests': self.harvests,
            'evaporation': self.evaporation,
        }


class FieldSimulator:
    """
    Simulador de ticks de un campo.

    El orden de las operaciones es fijo para que el comportamiento sea
    reproducible:
    1. Si el campo está listo para cosechar, solo se evalúan las solicitudes
    2. Baja la humedad según el consumo del cultivo (escalado por la evaporación)
    3. Baja el nivel de escaneo según el cultivo
    4. Crece si la humedad y la salud lo permiten
    5. Tirada de enfermedad (solo si está sano)
    6. Daño de la enfermedad
    7. Evaluación de umbrales y emisión de solicitudes nuevas
    """

    def __init__(self, rng: Optional[random.Random] = None, disease_probability: float = 0.05):
        self.rng = rng or random.Random()
        self.disease_probability = disease_probability

    def tick(self, state: FieldState) -> List[Tuple[str, Tuple]]:
        """
        Ejecuta un tick sobre el campo.

        Args:
            state: Estado del campo (se modifica en sitio)

        Returns:
            Lista de solicitudes nuevas como (verbo, argumentos)
        """
        if not state.is_ready_for_harvest:
            state.moisture = clamp(state.moisture - int(state.crop_type.water_consumption * state.evaporation))
            state.scan_level = clamp(state.scan_level - state.crop_type.scan_decay)

            if state.moisture > GROWTH_MOISTURE_MIN and state.health > GROWTH_HEALTH_MIN:
                state.growth = clamp(state.growth + state.crop_type.growth_speed)

            if state.disease is None and self.rng.random() < self.disease_probability:
                state.disease = self.rng.choice(list(DiseaseType))

            if state.disease is not None:
                state.health = clamp(state.health - state.disease.damage_per_tick)

        return self.collect_requests(state)

    def collect_requests(self, state: FieldState) -> List[Tuple[str, Tuple]]:
        """Marca y retorna las solicitudes que se vuelven verdaderas"""
        requests = []

        if state.needs_scan and not state.scan_requested:
            state.scan_requested = True
            requests.append(('SCAN', (state.field_id,)))

        if state.needs_water and not state.water_requested:
            state.water_requested = True
            requests.append(('WATER', (state.field_id, state.water_needed)))

        if state.needs_treatment and not state.diagnosis_requested:
            state.diagnosis_requested = True
            requests.append(('DIAGNOSE', (state.field_id, state.disease, state.moisture, state.health)))

        if state.is_ready_for_harvest and not state.harvest_requested:
            state.harvest_requested = True
            requests.append(('HARVEST', (state.field_id,)))

        return requests
