from fastapi import status


async def test_register_and_login(client, register):
    user, headers = await register("ada@example.com")
    assert user["email"] == "ada@example.com"
    assert "passwordHash" not in user

    response = await client.post("/api/auth/login", json={"email": "ADA@example.com", "password": "secret123"})
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["data"]["token"]
    assert body["data"]["user"]["lastLoginAt"] is not None


async def test_duplicate_registration_conflicts(client, register):
    await register("ada@example.com")
    response = await client.post(
        "/api/auth/register",
        json={"email": "ada@example.com", "password": "secret123", "firstName": "A", "lastName": "L"},
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["success"] is False


async def test_wrong_password(client, register):
    await register("ada@example.com")
    response = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": "nope"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"success": False, "message": "Invalid email or password"}


async def test_validation_errors_use_the_error_envelope(client):
    response = await client.post("/api/auth/register", json={"email": "not-an-email", "password": "123"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    fields = {error["field"] for error in body["errors"]}
    assert {"email", "password", "firstName", "lastName"} <= fields


async def test_me_requires_a_token(client):
    response = await client.get("/api/auth/me")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_me_lists_owned_organizations(client, register):
    _, headers = await register("ada@example.com")
    await client.post("/api/organizations", json={"name": "Acme", "slug": "acme"}, headers=headers)

    response = await client.get("/api/auth/me", headers=headers)
    profile = response.json()["data"]["user"]
    assert [org["slug"] for org in profile["ownedOrganizations"]] == ["acme"]
    assert [membership["role"] for membership in profile["memberships"]] == ["admin"]


async def test_profile_password_and_refresh(client, register):
    _, headers = await register("ada@example.com")

    response = await client.put("/api/auth/me", json={"firstName": "Augusta"}, headers=headers)
    assert response.json()["data"]["user"]["firstName"] == "Augusta"

    response = await client.put(
        "/api/auth/change-password",
        json={"currentPassword": "wrong-one", "newPassword": "another123"},
        headers=headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = await client.put(
        "/api/auth/change-password",
        json={"currentPassword": "secret123", "newPassword": "another123"},
        headers=headers,
    )
    assert response.status_code == status.HTTP_200_OK
    login = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": "another123"})
    assert login.status_code == status.HTTP_200_OK

    refreshed = await client.post("/api/auth/refresh", headers=headers)
    assert refreshed.json()["data"]["token"]
