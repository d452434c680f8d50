"""
Modelo de dominio de la granja: catálogo de cultivos, enfermedades e
insumos, estado de cada campo y el inventario compartido.
"""

from .catalog import CropType, DiseaseType, ItemType, WeatherType
from .field import FieldState, FieldSimulator
from .inventory import Inventory

__all__ = ['CropType', 'DiseaseType', 'ItemType', 'WeatherType', 'FieldState', 'FieldSimulator', 'Inventory']
