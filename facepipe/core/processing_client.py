# facepipe/core/processing_client.py
import logging
from functools import lru_cache

import httpx
from supabase import FunctionsHttpError, FunctionsRelayError

from facepipe.core.config import get_settings
from facepipe.core.errors import ProcessingRejection, TransportError
from facepipe.core.supabase_client import supabase_admin
from facepipe.schemas.face import ProcessFaceRequest, ProcessFaceResponse

logger = logging.getLogger(__name__)


class SupabaseProcessingClient:
    """
    Calls the process-face function over the Supabase Functions API.

    Outcome mapping:
      - 2xx with `ok: true`           -> ProcessFaceResponse
      - non-2xx `{ok: false, error}`  -> ProcessingRejection (reason kept)
      - relay / network failure       -> TransportError

    Args:
        function_name: edge function name (e.g. "process-face").
        functions: object exposing `invoke(name, invoke_options)`. Defaults
            to the service-role client's `functions`, so the call carries
            the service role bearer.
    """

    def __init__(self, function_name: str, functions=None):
        self.function_name = function_name
        self._functions = functions

    @property
    def functions(self):
        if self._functions is None:
            self._functions = supabase_admin().functions
        return self._functions

    def process_face(self, request: ProcessFaceRequest) -> ProcessFaceResponse:
        body = request.model_dump(mode="json", exclude_none=True)
        try:
            data = self.functions.invoke(
                self.function_name,
                invoke_options={"body": body, "responseType": "json"},
            )
        except FunctionsHttpError as exc:
            status_code = getattr(exc, "status", None) or ProcessingRejection.status_code
            raise ProcessingRejection(str(exc) or "Processing failed", status_code=status_code) from exc
        except FunctionsRelayError as exc:
            raise TransportError(f"Processing relay failed: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Processing service unreachable: {exc}") from exc

        if not isinstance(data, dict) or not data.get("ok"):
            error = data.get("error") if isinstance(data, dict) else None
            raise ProcessingRejection(error or "Processing failed")

        logger.info(
            f"process-face accepted upload {request.upload_id} "
            f"(version {data.get('face_version')})"
        )
        return ProcessFaceResponse.model_validate(data)


@lru_cache
def get_processing_client() -> SupabaseProcessingClient:
    """FastAPI dependency returning the process-wide processing client."""
    return SupabaseProcessingClient(get_settings().PROCESS_FACE_FUNCTION)
