"""
Test Case Model
===============
One equation submitted to every service, with the result it must produce.
An expected_result of "error" means the service must reject the equation.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict


class TestCase(BaseModel):
    __test__ = False  # not a pytest class

    model_config = ConfigDict(frozen=True)

    equation: str
    expected_result: str
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.equation
