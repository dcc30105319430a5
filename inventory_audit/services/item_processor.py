"""Two-stage item check: Steam ban lookup, then inventory valuation."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Optional

import httpx

from inventory_audit.models.outcome import ItemOutcome, OutcomeKind, Severity
from inventory_audit.utils.errors import SteamAPIError, UpstreamAPIError, ValuationAPIError

logger = logging.getLogger(__name__)

LogFn = Callable[..., Any]


def _no_log(message: str, severity: Severity = Severity.INFO) -> None:
    pass


def format_brl(value: float) -> str:
    """Format a value as Brazilian reais, e.g. ``R$ 1234,50``."""
    return f"R$ {value:.2f}".replace(".", ",")


class ItemProcessor(ABC):
    """Abstract interface for checking one identifier.

    Implementations must not raise for ordinary upstream failures; those are
    reported as ``upstream-error-stage1`` / ``upstream-error-stage2`` outcomes.
    """

    @abstractmethod
    async def process_item(self, identifier: str, log: LogFn = _no_log) -> ItemOutcome:
        """Run both stages for one identifier and return its outcome."""
        ...


class SteamInventoryProcessor(ItemProcessor):
    """Checks Steam profiles for bans and values clean inventories."""

    def __init__(
        self,
        steam_api_key: str,
        valuation_api_key: str = "",
        steam_base_url: str = "https://api.steampowered.com/",
        valuation_base_url: str = "https://montuga.com/api/IPricing/inventory",
        app_id: int = 730,
        usd_to_brl_rate: float = 5.25,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the SteamInventoryProcessor.

        Args:
            steam_api_key: Steam Web API key (stage 1)
            valuation_api_key: Valuation API key; stage 2 is skipped when empty
            steam_base_url: Steam Web API root
            valuation_base_url: Valuation API inventory root
            app_id: Steam app whose inventory is valued
            usd_to_brl_rate: Conversion applied to the USD valuation
            timeout: Per-request timeout in seconds
            transport: httpx transport override, mainly for tests
        """
        self.steam_api_key = steam_api_key
        self.valuation_api_key = valuation_api_key
        self.steam_base_url = steam_base_url.rstrip("/") + "/"
        self.valuation_base_url = valuation_base_url.rstrip("/")
        self.app_id = app_id
        self.usd_to_brl_rate = usd_to_brl_rate
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.timeout)

    async def _steam_get(self, client: httpx.AsyncClient, path: str, identifier: str) -> dict:
        try:
            response = await client.get(
                f"{self.steam_base_url}{path}",
                params={"key": self.steam_api_key, "steamids": identifier},
            )
        except httpx.HTTPError as e:
            raise SteamAPIError(0, f"{type(e).__name__}: {e}")
        if not response.is_success:
            raise SteamAPIError(response.status_code, "unexpected status")
        try:
            data = response.json()
        except ValueError:
            raise SteamAPIError(response.status_code, "response body is not JSON")
        if not isinstance(data, dict):
            raise SteamAPIError(response.status_code, "unexpected response shape")
        return data

    @staticmethod
    def _first_player(players: Any, empty_status: int, empty_message: str) -> dict:
        """First record of a ``players`` array, checked for shape."""
        if not players:
            raise SteamAPIError(empty_status, empty_message)
        if not isinstance(players, list) or not isinstance(players[0], dict):
            raise SteamAPIError(200, "unexpected response shape")
        return players[0]

    async def fetch_display_name(self, client: httpx.AsyncClient, identifier: str) -> str:
        """
        Look up the profile name.

        Raises:
            SteamAPIError: If the lookup fails or the profile does not exist
        """
        data = await self._steam_get(client, "ISteamUser/GetPlayerSummaries/v0002/", identifier)
        response = data.get("response")
        players = response.get("players") if isinstance(response, dict) else None
        player = self._first_player(players, 404, "profile not found")
        return player.get("personaname") or "N/A"

    async def fetch_bans(self, client: httpx.AsyncClient, identifier: str) -> tuple[bool, int]:
        """
        Look up VAC and game bans.

        Returns:
            Tuple of (vac_banned, number_of_game_bans)

        Raises:
            SteamAPIError: If the lookup fails or returns no players
        """
        data = await self._steam_get(client, "ISteamUser/GetPlayerBans/v1/", identifier)
        bans = self._first_player(data.get("players"), 200, "ban lookup returned no players")
        try:
            return bool(bans.get("VACBanned")), int(bans.get("NumberOfGameBans") or 0)
        except (TypeError, ValueError):
            raise SteamAPIError(200, "malformed ban record")

    async def fetch_valuation(self, client: httpx.AsyncClient, identifier: str) -> tuple[float, float]:
        """
        Value the inventory.

        Returns:
            Tuple of (value_in_brl, cases_percentage)

        Raises:
            ValuationAPIError: If the valuation request fails
        """
        url = f"{self.valuation_base_url}/{identifier}/{self.app_id}/total-value"
        try:
            response = await client.get(
                url,
                headers={"api-key": self.valuation_api_key, "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise ValuationAPIError(0, f"{type(e).__name__}: {e}")

        if not response.is_success:
            message = f"body: {response.text[:120]}"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("message"):
                    message = body["message"]
            except ValueError:
                pass
            raise ValuationAPIError(response.status_code, message)

        try:
            data = response.json()
            total_usd = float(data.get("total_value") or 0)
            cases_percentage = float(data.get("cases_percentage") or 0)
        except (ValueError, TypeError, AttributeError):
            raise ValuationAPIError(response.status_code, "malformed valuation response")

        return round(total_usd * self.usd_to_brl_rate, 2), cases_percentage

    async def process_item(self, identifier: str, log: LogFn = _no_log) -> ItemOutcome:
        async with self._client() as client:
            # Stage 1: profile and bans
            name = "N/A"
            try:
                name = await self.fetch_display_name(client, identifier)
                log(f"Profile found: {name}")
                vac_banned, game_bans = await self.fetch_bans(client, identifier)
            except UpstreamAPIError as e:
                reason = f"Ban check failed: {e}"
                log(reason, Severity.ERROR)
                return ItemOutcome(
                    id=identifier,
                    display_name=name,
                    outcome_kind=OutcomeKind.STAGE1_ERROR,
                    reason=reason,
                )

            if vac_banned:
                log("VAC ban detected, valuation skipped.", Severity.ERROR)
                return ItemOutcome(
                    id=identifier,
                    display_name=name,
                    outcome_kind=OutcomeKind.VERIFIED_FLAGGED,
                    reason="VAC ban detected.",
                    vac_banned=True,
                    game_bans=game_bans,
                )

            if game_bans > 0:
                log(f"{game_bans} game ban(s) on record.", Severity.WARN)
            else:
                log("Clean (no bans).", Severity.SUCCESS)

            if not self.valuation_api_key:
                return ItemOutcome(
                    id=identifier,
                    display_name=name,
                    outcome_kind=OutcomeKind.VERIFIED_CLEAN,
                    reason="Ban check passed; valuation not configured.",
                    game_bans=game_bans,
                )

            # Stage 2: valuation
            log("Requesting inventory valuation...")
            try:
                value, cases_percentage = await self.fetch_valuation(client, identifier)
            except UpstreamAPIError as e:
                reason = f"Valuation failed: {e}"
                log(reason, Severity.ERROR)
                return ItemOutcome(
                    id=identifier,
                    display_name=name,
                    outcome_kind=OutcomeKind.STAGE2_ERROR,
                    reason=reason,
                    game_bans=game_bans,
                )

        log(f"Inventory valued at {format_brl(value)}.", Severity.SUCCESS if value > 0 else Severity.WARN)
        return ItemOutcome(
            id=identifier,
            display_name=name,
            outcome_kind=OutcomeKind.VALUATION_SUCCESS,
            value=value,
            reason="Inventory valued successfully.",
            game_bans=game_bans,
            cases_percentage=cases_percentage,
            processed_at=datetime.utcnow(),
        )


def create_item_processor(transport: Optional[httpx.AsyncBaseTransport] = None) -> SteamInventoryProcessor:
    """
    Create a SteamInventoryProcessor using application settings.

    Args:
        transport: Optional httpx transport override

    Returns:
        Configured SteamInventoryProcessor instance
    """
    from inventory_audit.config import get_settings

    settings = get_settings()
    if not settings.steam_api_key:
        logger.warning("STEAM_API_KEY is not set; every ban check will fail")
    return SteamInventoryProcessor(
        steam_api_key=settings.steam_api_key,
        valuation_api_key=settings.valuation_api_key,
        steam_base_url=settings.steam_api_base_url,
        valuation_base_url=settings.valuation_base_url,
        app_id=settings.valuation_app_id,
        usd_to_brl_rate=settings.usd_to_brl_rate,
        timeout=settings.upstream_timeout_seconds,
        transport=transport,
    )
