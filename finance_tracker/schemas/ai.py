from pydantic import BaseModel


class AdviceRequest(BaseModel):
    language: str = "en"
    currency: str = "USD"
