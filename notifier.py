import logging
from typing import Any, Dict, Literal, Optional

import httpx

log = logging.getLogger("whitelist")

MirrorAction = Literal["add", "remove"]


class MirrorFailureNotifier:
    """Forward whitelist mirror failures to an operator webhook.

    Delivery is best effort: errors are logged and never raised, so a broken
    webhook cannot turn a committed binding change into a failed request.
    """

    def __init__(self, webhook_url: Optional[str]):
        self.webhook_url = webhook_url

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def notify(
        self,
        *,
        action: MirrorAction,
        platform_user_id: int,
        game_account_name: str,
        error: str,
    ) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            log.info("Mirror failure webhook disabled (MIRROR_FAILURE_WEBHOOK_URL not set)")
            return None

        payload: Dict[str, Any] = {
            "event": "mirror_failure",
            "action": action,
            "platform_user_id": platform_user_id,
            "game_account_name": game_account_name,
            "error": error,
        }

        try:
            timeout = httpx.Timeout(connect=5.0, read=10.0, write=10.0, pool=5.0)
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                r = await client.post(self.webhook_url, json=payload)

            if 200 <= r.status_code < 300:
                log.info("Mirror failure webhook delivered: %s", r.status_code)
            else:
                log.warning("Mirror failure webhook responded non-2xx: %s %s", r.status_code, r.text)

            return {"status": r.status_code}

        # a malformed URL raises InvalidURL, or a ValueError from IDNA encoding, before any request is sent
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            log.exception("Mirror failure webhook call failed: %s", e)
            return {"status": 0, "error": str(e)}
