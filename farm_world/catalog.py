from enum import Enum
from typing import List


class ItemType(Enum):
    """Insumos y productos que maneja el inventario"""
    WATER = ('Water', 10.0, False)
    PESTICIDE_A = ('Pesticide A', 25.0, False)
    FUNGICIDE_X = ('Fungicide X', 40.0, False)
    ANTIBIOTIC_Z = ('Antibiotic Z', 35.0, False)
    CORN_CROP = ('Corn', 50.0, True)
    WHEAT_CROP = ('Wheat', 40.0, True)
    RICE_CROP = ('Rice', 60.0, True)

    def __init__(self, display_name: str, base_price: float, is_crop: bool):
        self.display_name = display_name
        self.base_price = base_price
        self.is_crop = is_crop

    @property
    def is_chemical(self) -> bool:
        return not self.is_crop and self is not ItemType.WATER

    @classmethod
    def supplies(cls) -> List['ItemType']:
        """Insumos que se compran a proveedores"""
        return [item for item in cls if not item.is_crop]

    @classmethod
    def crops(cls) -> List['ItemType']:
        """Productos cosechados que se venden a compradores"""
        return [item for item in cls if item.is_crop]


class CropType(Enum):
    """
    Tipos de cultivo.

    Cada cultivo tiene: velocidad de crecimiento, consumo de agua por tick,
    pérdida de escaneo por tick, susceptibilidad a enfermedades y el
    producto que genera al cosecharse.
    """
    CORN = (1, 2, 3, 1.0, 'CORN_CROP')
    WHEAT = (3, 1, 1, 0.8, 'WHEAT_CROP')
    RICE = (2, 3, 2, 1.2, 'RICE_CROP')

    def __init__(self, growth_speed: int, water_consumption: int, scan_decay: int,
                 disease_susceptibility: float, crop_item: str):
        self.growth_speed = growth_speed
        self.water_consumption = water_consumption
        self.scan_decay = scan_decay
        self.disease_susceptibility = disease_susceptibility
        self._crop_item = crop_item

    @property
    def crop_item(self) -> ItemType:
        return ItemType[self._crop_item]

    @property
    def harvest_value(self) -> float:
        """Valor de referencia de una cosecha (precio base del producto)"""
        return self.crop_item.base_price


class DiseaseType(Enum):
    """Enfermedades posibles: cura necesaria y daño a la salud por tick"""
    APHIDS = ('PESTICIDE_A', 1)
    FUNGAL_BLIGHT = ('FUNGICIDE_X', 3)
    ROOT_ROT = ('ANTIBIOTIC_Z', 2)

    def __init__(self, cure: str, damage_per_tick: int):
        self._cure = cure
        self.damage_per_tick = damage_per_tick

    @property
    def cure(self) -> ItemType:
        return ItemType[self._cure]


class WeatherType(Enum):
    """
    Estados del clima: humedad que aporta por tick, multiplicador de
    evaporación y límite acumulado de la tirada que lo elige.
    """
    SUNNY = (0, 1.5, 0.35)
    CLOUDY = (0, 0.8, 0.60)
    RAINY = (5, 0.3, 0.85)
    STORM = (10, 0.2, 1.0)

    def __init__(self, moisture_bonus: int, evaporation: float, roll_limit: float):
        self.moisture_bonus = moisture_bonus
        self.evaporation = evaporation
        self.roll_limit = roll_limit

    @classmethod
    def from_roll(cls, roll: float) -> 'WeatherType':
        """Clima para una tirada uniforme en [0, 1)"""
        for weather in cls:
            if roll < weather.roll_limit:
                return weather
        return cls.STORM
