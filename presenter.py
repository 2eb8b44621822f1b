"""User-facing text for binding results."""
from datetime import datetime

from binding_sync import (
    AccountTaken,
    AlreadyBound,
    BindingFound,
    BindingInfo,
    BoundButMirrorFailed,
    BoundSuccessfully,
    NotBound,
    UnboundButMirrorFailed,
    UnboundSuccessfully,
)

STORE_FAILURE_MESSAGE = "Binding service is temporarily unavailable, please try again later."


def format_registered_at(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _binding_details(binding: BindingInfo) -> str:
    return (
        "📝 Binding info:\n"
        f"Telegram ID: {binding.platform_user_id}\n"
        f"Game account: {binding.game_account_name}\n"
        f"Registered at: {format_registered_at(binding.registered_at_millis)}"
    )


def render(result) -> str:
    if isinstance(result, BindingFound):
        return _binding_details(result.binding)
    if isinstance(result, NotBound):
        if result.game_account_name is not None:
            return "This game account is not bound to any Telegram user yet."
        return "You have not bound a game account yet."
    if isinstance(result, AlreadyBound):
        return f"You have already bound a game account! (account: {result.game_account_name})"
    if isinstance(result, AccountTaken):
        return f"This account is already bound by someone else (Telegram ID: {result.platform_user_id})"
    if isinstance(result, BoundSuccessfully):
        return (
            "Bound successfully! 🎉\n"
            f"Telegram ID: {result.binding.platform_user_id}\n"
            f"Game account: {result.binding.game_account_name}"
        )
    if isinstance(result, BoundButMirrorFailed):
        return f"Bound successfully, but adding to the whitelist failed: {result.error_detail}"
    if isinstance(result, UnboundSuccessfully):
        return (
            "✅ Unbound successfully!\n"
            f"Telegram ID {result.platform_user_id} is no longer bound to game account {result.game_account_name}"
        )
    if isinstance(result, UnboundButMirrorFailed):
        return f"Unbound successfully, but removing from the whitelist failed: {result.error_detail}"
    raise TypeError(f"no message for result {type(result).__name__}")
