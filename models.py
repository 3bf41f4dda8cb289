from pydantic import BaseModel, Field, computed_field
from typing import Optional, Dict

class Printer(BaseModel):
    name: str
    uri: str = ''
    status: str = 'unknown'
    is_default: bool = False

    @computed_field
    @property
    def is_usb(self) -> bool:
        return 'usb' in self.uri.lower()

    @computed_field
    @property
    def is_bluetooth(self) -> bool:
        uri = self.uri.lower()
        return 'bluetooth' in uri or 'bth' in uri

    @computed_field
    @property
    def connection_type(self) -> str:
        if self.is_usb:
            return 'usb'
        if self.is_bluetooth:
            return 'bluetooth'
        return 'network'

class PrintOptions(BaseModel):
    copies: int = Field(1, ge=1)
    media: Optional[str] = None
    grayscale: bool = False
    fit_to_page: bool = False
    # passed through as `-o key=value`
    extra_options: Dict[str, str] = Field(default_factory=dict)

class PrintResult(BaseModel):
    printer_name: str
    job_id: str

class ResumeResult(BaseModel):
    was_enabled: bool
    message: str
