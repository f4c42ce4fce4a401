from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional, Union

# Room counts keep the upstream int/float distinction so 3 is not echoed as 3.0
Count = Optional[Union[int, float]]

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class Property(CamelModel):
    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    bedrooms: Count = None
    bathrooms: Count = None
    reception_rooms: Count = None
    parking: Optional[str] = None
    address_street: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_country: Optional[str] = None
    address_postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    listing_url: Optional[str] = None
    status: Optional[str] = None

class PropertiesResponse(CamelModel):
    properties: List[Property]
    total: int
    last_fetched: str

class PropertyFilter(CamelModel):
    bedrooms_min: float = Field(0, ge=0)
    bedrooms_max: float = Field(10, ge=0)
    bathrooms_min: float = Field(0, ge=0)
    bathrooms_max: float = Field(10, ge=0)
    reception_rooms_min: float = Field(0, ge=0)
    reception_rooms_max: float = Field(10, ge=0)
    parking_types: List[str] = Field(default_factory=list)
    property_types: List[str] = Field(default_factory=list)

class FilterOptions(CamelModel):
    property_types: List[str]
    parking_types: List[str]

class GeocodeResult(CamelModel):
    latitude: float
    longitude: float
    display_name: Optional[str] = None

class ErrorResponse(BaseModel):
    error: str
    message: str

class HealthResponse(CamelModel):
    status: str
    cached_properties: int
    last_fetched: Optional[str] = None
    refreshing: bool
