from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    # Read straight from SQLAlchemy rows (audit log, notifications).
    model_config = ConfigDict(from_attributes=True)
