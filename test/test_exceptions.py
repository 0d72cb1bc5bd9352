"""
Tests for custom exception classes and global exception handlers

Tests exception initialization, status codes, details, and the
standardized error response format.
"""

import json

import pytest
from fastapi import FastAPI, HTTPException, status
from httpx import ASGITransport, AsyncClient

from blog_api.exception_handlers import create_error_response, get_error_type, register_exception_handlers
from blog_api.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BlogAPIError,
    DatabaseError,
    ErrorCode,
    InvalidTokenError,
    TokenExpiredError,
)


class TestBlogAPIError:
    """Test base BlogAPIError class"""

    def test_defaults(self):
        exc = BlogAPIError("Test error")
        assert str(exc) == "Test error"
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.error_code is ErrorCode.INTERNAL_ERROR
        assert exc.details == {}

    def test_with_details(self):
        exc = BlogAPIError("Bad", status_code=418, details={"key": "value"})
        assert exc.status_code == 418
        assert exc.details == {"key": "value"}


class TestAuthExceptions:
    """Test authentication and authorization exceptions"""

    def test_authentication_error(self):
        exc = AuthenticationError()
        assert exc.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc.error_code is ErrorCode.AUTH_FAILED

    def test_token_errors(self):
        assert TokenExpiredError().error_code is ErrorCode.AUTH_TOKEN_EXPIRED
        assert InvalidTokenError().error_code is ErrorCode.AUTH_TOKEN_INVALID
        assert isinstance(TokenExpiredError(), AuthenticationError)

    def test_authorization_error(self):
        exc = AuthorizationError("Not your blog", required_role="admin")
        assert exc.status_code == status.HTTP_403_FORBIDDEN
        assert exc.error_code is ErrorCode.AUTH_PERMISSION_DENIED
        assert exc.details == {"required_role": "admin"}


class TestDatabaseError:
    """Test infrastructure exceptions"""

    def test_database_error(self):
        exc = DatabaseError(operation="insert")
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.error_code is ErrorCode.DATABASE_ERROR
        assert exc.details == {"operation": "insert"}


class TestErrorResponse:
    """Test create_error_response()"""

    def test_response_shape(self):
        response = create_error_response(
            status_code=404,
            message="Blog not found",
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            details={"resource_id": 1},
            path="/api/v1/blogs/1/analytics",
        )
        body = json.loads(response.body)
        assert response.status_code == 404
        assert body == {
            "error": {
                "status_code": 404,
                "message": "Blog not found",
                "type": "Not Found",
                "error_code": "RESOURCE_NOT_FOUND",
                "details": {"resource_id": 1},
                "path": "/api/v1/blogs/1/analytics",
            }
        }

    def test_unknown_status_type(self):
        assert get_error_type(418) == "Error"


@pytest.fixture
def error_app() -> FastAPI:
    test_app = FastAPI()
    register_exception_handlers(test_app)

    @test_app.get("/forbidden")
    async def forbidden():
        raise AuthorizationError("Not authorized to view analytics for this blog")

    @test_app.get("/http")
    async def http_error():
        raise HTTPException(status_code=401, detail="Could not validate credentials", headers={"WWW-Authenticate": "Bearer"})

    @test_app.get("/items/{item_id}")
    async def typed(item_id: int):
        return {"item_id": item_id}

    @test_app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    return test_app


@pytest.mark.asyncio
class TestExceptionHandlers:
    """Test the registered global handlers"""

    async def test_blog_api_error(self, error_app):
        async with AsyncClient(transport=ASGITransport(app=error_app), base_url="http://test") as ac:
            response = await ac.get("/forbidden")

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["error_code"] == "AUTH_PERMISSION_DENIED"
        assert error["path"] == "/forbidden"

    async def test_http_exception_keeps_headers(self, error_app):
        async with AsyncClient(transport=ASGITransport(app=error_app), base_url="http://test") as ac:
            response = await ac.get("/http")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"]["error_code"] == "AUTH_FAILED"

    async def test_request_validation_error(self, error_app):
        async with AsyncClient(transport=ASGITransport(app=error_app), base_url="http://test") as ac:
            response = await ac.get("/items/abc")

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["error_code"] == "VALIDATION_FAILED"
        assert error["details"]["validation_errors"][0]["field"] == "path.item_id"

    async def test_unhandled_exception_hides_details(self, error_app):
        transport = ASGITransport(app=error_app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/boom")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["error_code"] == "INTERNAL_ERROR"
        assert "secret internals" not in error["message"]
