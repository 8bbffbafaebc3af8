# Tests for authorize/token request validation and client credential handlers.
# Created: 2026-10-19

import base64

import pytest
from conftest import build_request

from authgate.config import Config
from authgate.errors import (
    AccessDeniedError,
    InvalidClientError,
    InvalidGrantError,
    InvalidRequestError,
    NoAppPermissionError,
    UnauthorizedClientError,
    UnsupportedGrantTypeError,
    UnsupportedResponseTypeError,
)
from authgate.handlers import Handlers, client_basic_handler, client_form_handler
from authgate.models import GrantType, ResponseType
from authgate.server import AuthorizationServer


def _basic(client_id="c1", secret="s1"):
    return {"Authorization": "Basic " + base64.b64encode(f"{client_id}:{secret}".encode()).decode()}


@pytest.fixture
def server(fake_manager):
    return AuthorizationServer(fake_manager)


class TestClientHandlers:
    @pytest.mark.asyncio
    async def test_basic(self):
        assert await client_basic_handler(build_request(headers=_basic())) == ("c1", "s1")

    @pytest.mark.asyncio
    async def test_basic_secret_with_colon(self):
        request = build_request(headers=_basic(secret="a:b"))
        assert await client_basic_handler(request) == ("c1", "a:b")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "header",
        [None, "Bearer abc", "Basic", "Basic !!!not-base64", "Basic " + base64.b64encode(b"nocolon").decode()],
    )
    async def test_basic_invalid(self, header):
        headers = {"Authorization": header} if header else None
        with pytest.raises(InvalidClientError):
            await client_basic_handler(build_request(headers=headers))

    @pytest.mark.asyncio
    async def test_form(self):
        request = build_request("POST", form={"client_id": "c1", "client_secret": "s1"})
        assert await client_form_handler(request) == ("c1", "s1")

    @pytest.mark.asyncio
    async def test_form_without_secret(self):
        request = build_request("POST", form={"client_id": "c1"})
        assert await client_form_handler(request) == ("c1", "")

    @pytest.mark.asyncio
    async def test_form_missing_client(self):
        with pytest.raises(InvalidClientError):
            await client_form_handler(build_request("POST", form={"client_secret": "s1"}))


class TestValidateAuthorizeRequest:
    """Tests for AuthorizationServer.validate_authorize_request."""

    @pytest.mark.asyncio
    async def test_get(self, server):
        request = build_request(
            query={
                "client_id": "c1",
                "response_type": "code",
                "redirect_uri": "https://app/cb",
                "state": "xyz",
                "scope": "read",
            }
        )
        req = await server.validate_authorize_request(request)
        assert req.client_id == "c1"
        assert req.response_type is ResponseType.CODE
        assert req.redirect_uri == "https://app/cb"
        assert req.state == "xyz"
        assert req.scope == "read"
        assert req.user_id == ""
        assert req.request is request

    @pytest.mark.asyncio
    async def test_post_form(self, server):
        request = build_request("POST", form={"client_id": "c1", "response_type": "token"})
        req = await server.validate_authorize_request(request)
        assert req.response_type is ResponseType.TOKEN
        assert req.redirect_uri == ""

    @pytest.mark.asyncio
    async def test_wrong_method(self, server):
        request = build_request("PUT", query={"client_id": "c1", "response_type": "code"})
        with pytest.raises(InvalidRequestError):
            await server.validate_authorize_request(request)

    @pytest.mark.asyncio
    async def test_missing_client_id(self, server):
        with pytest.raises(InvalidRequestError):
            await server.validate_authorize_request(build_request(query={"response_type": "code"}))

    @pytest.mark.asyncio
    async def test_unknown_response_type(self, server):
        request = build_request(query={"client_id": "c1", "response_type": "id_token"})
        with pytest.raises(UnsupportedResponseTypeError):
            await server.validate_authorize_request(request)

    @pytest.mark.asyncio
    async def test_disallowed_response_type(self, fake_manager):
        server = AuthorizationServer(fake_manager, Config(allowed_response_types=[ResponseType.CODE]))
        request = build_request(query={"client_id": "c1", "response_type": "token"})
        with pytest.raises(UnauthorizedClientError):
            await server.validate_authorize_request(request)


class TestValidateTokenRequest:
    """Tests for AuthorizationServer.validate_token_request."""

    @pytest.mark.asyncio
    async def test_get_rejected_by_default(self, server):
        request = build_request("GET", query={"grant_type": "client_credentials"}, headers=_basic())
        with pytest.raises(InvalidRequestError):
            await server.validate_token_request(request)

    @pytest.mark.asyncio
    async def test_get_allowed_when_configured(self, fake_manager):
        server = AuthorizationServer(fake_manager, Config(allow_get_access_request=True))
        request = build_request("GET", query={"grant_type": "client_credentials"}, headers=_basic())
        grant_type, tgr = await server.validate_token_request(request)
        assert grant_type is GrantType.CLIENT_CREDENTIALS
        assert (tgr.client_id, tgr.client_secret) == ("c1", "s1")

    @pytest.mark.asyncio
    async def test_missing_grant_type(self, server):
        with pytest.raises(UnsupportedGrantTypeError):
            await server.validate_token_request(build_request("POST", form={}, headers=_basic()))

    @pytest.mark.asyncio
    async def test_client_info_failure_propagates(self, server):
        request = build_request("POST", form={"grant_type": "client_credentials"})
        with pytest.raises(InvalidClientError):
            await server.validate_token_request(request)

    @pytest.mark.asyncio
    async def test_authorization_code(self, server):
        request = build_request(
            "POST",
            form={"grant_type": "authorization_code", "code": "abc123", "redirect_uri": "https://app/cb"},
            headers=_basic(),
        )
        grant_type, tgr = await server.validate_token_request(request)
        assert grant_type is GrantType.AUTHORIZATION_CODE
        assert tgr.code == "abc123"
        assert tgr.redirect_uri == "https://app/cb"
        assert tgr.request is request

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "form",
        [
            {"grant_type": "authorization_code", "code": "abc123"},
            {"grant_type": "authorization_code", "redirect_uri": "https://app/cb"},
        ],
    )
    async def test_authorization_code_missing_fields(self, server, form):
        with pytest.raises(InvalidRequestError):
            await server.validate_token_request(build_request("POST", form=form, headers=_basic()))

    @pytest.mark.asyncio
    async def test_password(self, fake_manager):
        async def password(username, password):
            return "u1" if (username, password) == ("alice", "pw") else ""

        server = AuthorizationServer(fake_manager, handlers=Handlers(password_authorization=password))
        request = build_request(
            "POST",
            form={"grant_type": "password", "username": "alice", "password": "pw", "scope": "read"},
            headers=_basic(),
        )
        grant_type, tgr = await server.validate_token_request(request)
        assert grant_type is GrantType.PASSWORD
        assert tgr.user_id == "u1"
        assert tgr.scope == "read"

    @pytest.mark.asyncio
    async def test_password_rejected(self, fake_manager):
        async def password(username, password):
            return ""

        server = AuthorizationServer(fake_manager, handlers=Handlers(password_authorization=password))
        request = build_request(
            "POST", form={"grant_type": "password", "username": "alice", "password": "bad"}, headers=_basic()
        )
        with pytest.raises(InvalidGrantError):
            await server.validate_token_request(request)

    @pytest.mark.asyncio
    async def test_password_missing_credentials(self, server):
        request = build_request("POST", form={"grant_type": "password", "username": "alice"}, headers=_basic())
        with pytest.raises(InvalidRequestError):
            await server.validate_token_request(request)

    @pytest.mark.asyncio
    async def test_password_denied_by_default(self, server):
        request = build_request(
            "POST", form={"grant_type": "password", "username": "alice", "password": "pw"}, headers=_basic()
        )
        with pytest.raises(AccessDeniedError):
            await server.validate_token_request(request)

    @pytest.mark.asyncio
    async def test_password_permission_check(self, fake_manager):
        checked = []

        async def password(username, password):
            return "u1"

        async def check(user_id, client_id):
            checked.append((user_id, client_id))
            raise NoAppPermissionError()

        server = AuthorizationServer(
            fake_manager,
            handlers=Handlers(password_authorization=password, check_user_permission=check),
        )
        request = build_request(
            "POST", form={"grant_type": "password", "username": "alice", "password": "pw"}, headers=_basic()
        )
        with pytest.raises(NoAppPermissionError):
            await server.validate_token_request(request)
        assert checked == [("u1", "c1")]

    @pytest.mark.asyncio
    async def test_permission_check_prefers_form_client_id(self, fake_manager):
        checked = []

        async def password(username, password):
            return "u1"

        async def check(user_id, client_id):
            checked.append(client_id)

        server = AuthorizationServer(
            fake_manager,
            handlers=Handlers(password_authorization=password, check_user_permission=check),
        )
        request = build_request(
            "POST",
            form={"grant_type": "password", "username": "a", "password": "b", "client_id": "form-client"},
            headers=_basic(),
        )
        await server.validate_token_request(request)
        assert checked == ["form-client"]

    @pytest.mark.asyncio
    async def test_client_credentials(self, server):
        request = build_request("POST", form={"grant_type": "client_credentials", "scope": "all"}, headers=_basic())
        grant_type, tgr = await server.validate_token_request(request)
        assert grant_type is GrantType.CLIENT_CREDENTIALS
        assert tgr.scope == "all"
        assert tgr.user_id == ""

    @pytest.mark.asyncio
    async def test_refresh(self, server):
        request = build_request(
            "POST", form={"grant_type": "refresh_token", "refresh_token": "r1", "scope": "read"}, headers=_basic()
        )
        grant_type, tgr = await server.validate_token_request(request)
        assert grant_type is GrantType.REFRESHING
        assert tgr.refresh == "r1"
        assert tgr.scope == "read"

    @pytest.mark.asyncio
    async def test_refresh_missing_token(self, server):
        request = build_request("POST", form={"grant_type": "refresh_token"}, headers=_basic())
        with pytest.raises(InvalidRequestError):
            await server.validate_token_request(request)

    @pytest.mark.asyncio
    async def test_unknown_grant_passes_through(self, server):
        request = build_request("POST", form={"grant_type": "urn:example:custom"}, headers=_basic())
        grant_type, tgr = await server.validate_token_request(request)
        assert grant_type == "urn:example:custom"
        assert tgr.client_id == "c1"
