from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Optional, Tuple


class PropertyType:
    HOUSE = "house"
    CONDO = "condo"
    TOWNHOUSE = "townhouse"
    APARTMENT = "apartment"
    LAND = "land"
    COMMERCIAL = "commercial"

    choices = [
        (HOUSE, "House"),
        (CONDO, "Condo"),
        (TOWNHOUSE, "Townhouse"),
        (APARTMENT, "Apartment"),
        (LAND, "Land"),
        (COMMERCIAL, "Commercial"),
    ]
    values = [value for value, _ in choices]


class TaskStatus:
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    DEFERRED = "Deferred"

    values = [NOT_STARTED, IN_PROGRESS, COMPLETED, DEFERRED]


@dataclass(frozen=True)
class Property:
    id: int
    title: str = ""
    price: float = 0
    address: str = ""
    coordinates: Tuple[float, float] = (0.0, 0.0)
    bedrooms: int = 0
    bathrooms: int = 0
    square_feet: int = 0
    property_type: str = ""
    featured: bool = False
    images: Tuple[str, ...] = ()
    description: str = ""
    amenities: Tuple[str, ...] = ()
    year_built: int = 0
    listing_date: Optional[date] = None

    @property
    def lat(self):
        return self.coordinates[0]

    @property
    def lng(self):
        return self.coordinates[1]

    def as_dict(self):
        data = asdict(self)
        data["coordinates"] = {"lat": self.lat, "lng": self.lng}
        data["images"] = list(self.images)
        data["amenities"] = list(self.amenities)
        data["listing_date"] = self.listing_date.isoformat() if self.listing_date else None
        return data


@dataclass(frozen=True)
class FilterCriteria:
    """Canonical filter record: a field is either None or meaningfully set."""

    price_min: Optional[float] = None
    price_max: Optional[float] = None
    property_types: Tuple[str, ...] = ()
    bedrooms_min: Optional[int] = None
    bathrooms_min: Optional[int] = None
    square_feet_min: Optional[int] = None
    amenities: Tuple[str, ...] = ()
    query: Optional[str] = None

    def as_dict(self):
        """Only the active keys, in a fixed order."""
        data = {}
        for key, value in asdict(self).items():
            if value is None or value == ():
                continue
            data[key] = list(value) if isinstance(value, tuple) else value
        return data

    def __bool__(self):
        return bool(self.as_dict())


@dataclass(frozen=True)
class SavedSearch:
    id: int
    name: str
    filters: FilterCriteria = field(default_factory=FilterCriteria)
    result_count: int = 0
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Task:
    id: int
    name: str
    description: str = ""
    status: str = TaskStatus.NOT_STARTED
    due_date: Optional[date] = None
    assigned_to: Optional[int] = None
    property_id: Optional[int] = None
    created_on: Optional[datetime] = None
    modified_on: Optional[datetime] = None
