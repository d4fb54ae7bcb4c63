from pydantic import BaseModel, ConfigDict


class EmptyResponse(BaseModel):
    """Marker return type for calls whose response body carries nothing useful.

    Any body the server sends is ignored, so ``DELETE`` calls answering with
    ``204 No Content`` or an echo payload decode the same way.
    """

    model_config = ConfigDict(frozen=True)
