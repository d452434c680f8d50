"""
Mobility - relocation of mobile units between farm locations

Workers never move themselves: they ask the mobility collaborator to take
them somewhere and are told when they arrive.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Optional

BASE_LOCATION = 'Base'


def field_location(field_id: int) -> str:
    return f'Field-{field_id}'


class Mobility(ABC):
    """Location-transfer interface"""

    @abstractmethod
    async def move_to(self, unit: str, destination: str,
                      on_arrival: Optional[Callable[[str], None]] = None) -> str:
        """
        Move a unit and call `on_arrival(destination)` once it is there.

        Returns:
            The location the unit arrived at
        """


class LocalMobility(Mobility):
    """In-process mobility: every trip takes a fixed travel time"""

    def __init__(self, travel_seconds: float):
        self.travel_seconds = travel_seconds
        self.trips = 0

    async def move_to(self, unit: str, destination: str,
                      on_arrival: Optional[Callable[[str], None]] = None) -> str:
        if self.travel_seconds > 0:
            await asyncio.sleep(self.travel_seconds)
        self.trips += 1
        if on_arrival is not None:
            on_arrival(destination)
        return destination

