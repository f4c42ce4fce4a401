from typing import Iterable, List

from app.schemas.property import FilterOptions, Property, PropertyFilter

# Slider ceiling: a maximum of 10 means "10 or more", i.e. no upper bound
OPEN_MAX = 10

def _within(value, minimum, maximum) -> bool:
    # Unknown counts never exclude a property
    if value is None:
        return True
    if value < minimum:
        return False
    if maximum < OPEN_MAX and value > maximum:
        return False
    return True

def matches(prop: Property, f: PropertyFilter) -> bool:
    if not _within(prop.bedrooms, f.bedrooms_min, f.bedrooms_max):
        return False
    if not _within(prop.bathrooms, f.bathrooms_min, f.bathrooms_max):
        return False
    if not _within(prop.reception_rooms, f.reception_rooms_min, f.reception_rooms_max):
        return False
    if f.parking_types:
        parking = (prop.parking or "").lower()
        if not parking or not any(t.lower() in parking for t in f.parking_types):
            return False
    if f.property_types:
        kind = (prop.type or "").lower()
        if not kind or not any(t.lower() == kind for t in f.property_types):
            return False
    return True

def apply_filters(properties: Iterable[Property], f: PropertyFilter) -> List[Property]:
    return [p for p in properties if matches(p, f)]

def has_active_filters(f: PropertyFilter) -> bool:
    return (
        f.bedrooms_min > 0
        or f.bedrooms_max < OPEN_MAX
        or f.bathrooms_min > 0
        or f.bathrooms_max < OPEN_MAX
        or f.reception_rooms_min > 0
        or f.reception_rooms_max < OPEN_MAX
        or bool(f.parking_types)
        or bool(f.property_types)
    )

def available_options(properties: Iterable[Property]) -> FilterOptions:
    """Distinct property and parking types present in the list, sorted."""
    property_types = set()
    parking_types = set()
    for p in properties:
        if p.type:
            property_types.add(p.type)
        if p.parking:
            parking_types.add(p.parking)
    return FilterOptions(property_types=sorted(property_types), parking_types=sorted(parking_types))
