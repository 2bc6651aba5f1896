from pydantic import BaseModel, Field, ValidationError


class SettingsSchema(BaseModel):
    progression_threshold: int = Field(3, ge=1)
    weight_increment: float = Field(2.5, ge=0)
    assist_decrement: float = Field(2.5, ge=0)
    weight_unit: str = "kg"
    history_limit: int = Field(200, ge=1)
    dashboard_days: int = Field(30, ge=1)
    api_token: str | bool = ""


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
