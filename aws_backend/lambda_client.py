import json
import logging

from botocore.exceptions import BotoCoreError, ClientError

from .base_client import AWSBaseClient
from .exceptions import BackendError, ProcedureError

logger = logging.getLogger(__name__)


class LambdaClient(AWSBaseClient):
    def __init__(self):
        super().__init__("lambda")

    def invoke(self, function_name, payload):
        """
        Call a function synchronously and return its decoded JSON result.

        Raises ProcedureError when the function crashed or answered
        {"ok": false, "error": ...}.
        """
        try:
            resp = self.client.invoke(
                FunctionName=function_name,
                InvocationType="RequestResponse",
                Payload=json.dumps(payload, default=str).encode("utf-8"),
            )
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Invoking %s failed: %s", function_name, exc)
            raise BackendError(f"{function_name}: {exc}") from exc

        body = json.loads(resp["Payload"].read() or b"null")
        if resp.get("FunctionError"):
            message = body.get("errorMessage") if isinstance(body, dict) else body
            raise ProcedureError(f"{function_name} crashed: {message}")
        if not isinstance(body, dict) or not body.get("ok"):
            error = body.get("error") if isinstance(body, dict) else None
            raise ProcedureError(f"{function_name} refused the call: {error}", code=error)
        return body
