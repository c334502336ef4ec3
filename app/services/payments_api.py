"""
Payments API client.

Thin aiohttp client for the payments REST API. Implements the AuthAPI,
KycAPI, TransferAPI, WalletAPI and PointsAPI contracts used by the flows,
guards and commands.

Every failure is raised as an UpstreamError subclass:
- network errors and 5xx -> UpstreamUnavailable
- timeouts -> UpstreamTimeout
- 4xx -> UpstreamRejected (with the API's message as detail)
"""

from decimal import Decimal
from typing import Any, Protocol

import aiohttp
from loguru import logger
from pydantic import ValidationError

from app.config.business_constants import (
    TRANSFER_KIND_BANK_WITHDRAW,
    TRANSFER_KIND_SEND,
    TRANSFER_KIND_WALLET_WITHDRAW,
)
from app.config.settings import settings
from app.models.api import (
    DepositAddress,
    KycStatus,
    OtpRequest,
    OtpVerification,
    Organization,
    PointsBreakdown,
    PointsTotal,
    ReferralResult,
    Transfer,
    TransferPage,
    TransferQuote,
    TransferRequest,
    TransferResult,
    WalletBalance,
)
from app.utils.exceptions import (
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)


# Collaborator contracts


class AuthAPI(Protocol):
    async def request_otp(self, email: str) -> OtpRequest: ...

    async def verify_otp(self, email: str, otp: str, sid: str) -> OtpVerification: ...

    async def check_token_valid(self, token: str) -> bool: ...

    async def logout(self, token: str) -> None: ...


class KycAPI(Protocol):
    async def get_status(self, token: str, email: str) -> KycStatus: ...


class TransferAPI(Protocol):
    async def quote(self, token: str, kind: str, params: TransferRequest) -> TransferQuote: ...

    async def submit(self, kind: str, token: str, request: TransferRequest) -> TransferResult: ...

    async def history(
        self, token: str, page: int = 1, limit: int = 10, type: str | None = None
    ) -> TransferPage: ...

    async def details(self, token: str, transfer_id: str) -> Transfer: ...


class WalletAPI(Protocol):
    async def list_balances(self, token: str) -> list[WalletBalance]: ...

    async def deposit_address(self, token: str, network: str) -> DepositAddress: ...

    async def set_default(self, token: str, wallet_id: str) -> None: ...


class PointsAPI(Protocol):
    async def total_points(self, token: str, email: str) -> PointsTotal: ...

    async def points_breakdown(self, token: str) -> PointsBreakdown: ...

    async def organization(self, token: str) -> Organization: ...

    async def apply_referral_code(self, token: str, code: str) -> ReferralResult: ...


# Submission endpoint per transfer kind
SUBMIT_PATHS = {
    TRANSFER_KIND_SEND: "/api/transfers/send",
    TRANSFER_KIND_WALLET_WITHDRAW: "/api/transfers/wallet-withdraw",
    TRANSFER_KIND_BANK_WITHDRAW: "/api/transfers/offramp",
}


def _error_detail(payload: Any) -> str | None:
    """Pull a human readable message out of an error body."""
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        if isinstance(message, list):
            return "; ".join(str(item) for item in message)
        if message:
            return str(message)
    if isinstance(payload, str) and payload.strip():
        return payload.strip()[:200]
    return None


def _amount(value: Decimal) -> str:
    return format(value, "f")


def build_transfer_body(kind: str, request: TransferRequest) -> dict[str, Any]:
    """
    Request body of a submission.

    Args:
        kind: Transfer kind (send, wallet_withdraw, bank_withdraw)
        request: Transfer parameters

    Returns:
        JSON body in the API's camelCase format
    """
    body: dict[str, Any] = {
        "amount": _amount(request.amount),
        "network": request.network,
    }
    if kind == TRANSFER_KIND_SEND:
        if request.email:
            body["email"] = request.email
        else:
            body["walletAddress"] = request.address
    elif kind == TRANSFER_KIND_WALLET_WITHDRAW:
        body["address"] = request.address
    elif kind == TRANSFER_KIND_BANK_WITHDRAW and request.bank_details:
        details = request.bank_details
        body.update(
            {
                "bankName": details.bank_name or "",
                "accountName": details.account_name or "",
                "accountNumber": details.account_number or "",
                "routingNumber": details.routing_number,
                "country": details.country,
                "reference": details.raw,
            }
        )
    return {key: value for key, value in body.items() if value is not None}


class PaymentsAPI:
    """
    Payments REST API client.

    One aiohttp session is shared by all calls and created lazily.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        Initialize API client.

        Args:
            base_url: API root (defaults to settings.api_base_url)
            timeout_seconds: Total timeout of one request
            session: Existing aiohttp session to reuse
        """
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or settings.api_timeout_seconds
        )
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Perform one API call and decode its JSON body.

        Raises:
            UpstreamTimeout: If the call timed out
            UpstreamUnavailable: On network errors and 5xx responses
            UpstreamRejected: On 4xx responses
        """
        request_headers = {"Content-Type": "application/json"}
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        if headers:
            request_headers.update(headers)
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        url = f"{self.base_url}{path}"
        session = await self._get_session()
        try:
            async with session.request(
                method,
                url,
                json=json,
                params=params,
                headers=request_headers,
                timeout=self.timeout,
            ) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = await response.text()
                if response.status >= 500:
                    logger.warning(f"API {method} {path}: HTTP {response.status}")
                    raise UpstreamUnavailable(
                        f"{method} {path} failed with HTTP {response.status}",
                        status=response.status,
                    )
                if response.status >= 400:
                    detail = _error_detail(payload)
                    logger.info(f"API {method} {path}: HTTP {response.status} {detail}")
                    raise UpstreamRejected(
                        f"{method} {path} rejected with HTTP {response.status}",
                        status=response.status,
                        detail=detail,
                    )
                return payload
        except TimeoutError as e:
            logger.warning(f"API {method} {path} timed out")
            raise UpstreamTimeout(f"{method} {path} timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"API {method} {path} failed: {e}")
            raise UpstreamUnavailable(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _parse(model: Any, payload: Any, path: str) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Unexpected response from {path}: {e}")
            raise UpstreamUnavailable(f"Unexpected response from {path}") from e

    # AuthAPI

    async def request_otp(self, email: str) -> OtpRequest:
        path = "/api/auth/email/request-otp"
        payload = await self._request("POST", path, json={"email": email})
        return self._parse(OtpRequest, payload, path)

    async def verify_otp(self, email: str, otp: str, sid: str) -> OtpVerification:
        path = "/api/auth/email/verify-otp"
        payload = await self._request(
            "POST", path, json={"email": email, "otp": otp, "sid": sid}
        )
        return self._parse(OtpVerification, payload, path)

    async def check_token_valid(self, token: str) -> bool:
        """
        Live token check against the profile endpoint.

        Returns:
            False if the API refuses the token, True if it answers normally
        """
        try:
            await self._request("GET", "/api/users/me", token=token)
        except UpstreamRejected as e:
            if e.is_unauthorized:
                return False
            raise
        return True

    async def logout(self, token: str) -> None:
        await self._request("POST", "/api/auth/logout", token=token)

    # KycAPI

    async def get_status(self, token: str, email: str) -> KycStatus:
        path = f"/api/kycs/status/{email}"
        payload = await self._request("GET", path, token=token)
        return self._parse(KycStatus, payload, path)

    # TransferAPI

    async def quote(self, token: str, kind: str, params: TransferRequest) -> TransferQuote:
        path = "/api/transfers/quote"
        payload = await self._request(
            "GET",
            path,
            token=token,
            params={
                "amount": _amount(params.amount),
                "network": params.network,
                "type": "send" if kind == TRANSFER_KIND_SEND else "withdraw",
            },
        )
        return self._parse(TransferQuote, payload, path)

    async def submit(self, kind: str, token: str, request: TransferRequest) -> TransferResult:
        """
        Submit a transfer.

        The idempotency key lets the API drop a repeated submission of the
        same flow.
        """
        path = SUBMIT_PATHS.get(kind)
        if path is None:
            raise ValueError(f"Unknown transfer kind: {kind}")
        headers = {}
        if request.idempotency_key:
            headers["Idempotency-Key"] = request.idempotency_key
        payload = await self._request(
            "POST",
            path,
            token=token,
            json=build_transfer_body(kind, request),
            headers=headers,
        )
        return self._parse(TransferResult, payload, path)

    async def history(
        self, token: str, page: int = 1, limit: int = 10, type: str | None = None
    ) -> TransferPage:
        path = "/api/transfers"
        payload = await self._request(
            "GET",
            path,
            token=token,
            params={"page": page, "limit": limit, "type": type},
        )
        return self._parse(TransferPage, payload, path)

    async def details(self, token: str, transfer_id: str) -> Transfer:
        path = f"/api/transfers/{transfer_id}"
        payload = await self._request("GET", path, token=token)
        return self._parse(Transfer, payload, path)

    # WalletAPI

    async def list_balances(self, token: str) -> list[WalletBalance]:
        path = "/api/wallets/balances"
        payload = await self._request("GET", path, token=token)
        return [self._parse(WalletBalance, item, path) for item in payload or []]

    async def deposit_address(self, token: str, network: str) -> DepositAddress:
        path = "/api/wallets"
        payload = await self._request("POST", path, token=token, json={"network": network})
        return self._parse(DepositAddress, payload, path)

    async def set_default(self, token: str, wallet_id: str) -> None:
        await self._request(
            "POST", "/api/wallets/default", token=token, json={"walletId": wallet_id}
        )

    # PointsAPI

    async def total_points(self, token: str, email: str) -> PointsTotal:
        path = "/api/points/total"
        payload = await self._request("GET", path, token=token, params={"email": email})
        return self._parse(PointsTotal, payload, path)

    async def points_breakdown(self, token: str) -> PointsBreakdown:
        path = "/api/points/all"
        payload = await self._request("GET", path, token=token)
        return self._parse(PointsBreakdown, payload, path)

    async def organization(self, token: str) -> Organization:
        path = "/api/organization"
        payload = await self._request("GET", path, token=token)
        return self._parse(Organization, payload, path)

    async def apply_referral_code(self, token: str, code: str) -> ReferralResult:
        path = "/api/organization/apply-referral-code"
        payload = await self._request("POST", path, token=token, json={"referralCode": code})
        return self._parse(ReferralResult, payload or {}, path)
