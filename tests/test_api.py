import pytest

from conftest import token_from


async def register(client, email="john@example.com", role="admin", files=None):
    return await client.post(
        "/users/register",
        data={
            "fullName": "John Doe",
            "email": email,
            "role": role,
            "contactNumber": "09171234567",
        },
        files=files,
    )


async def bearer(client, email, password):
    response = await client.post(
        "/users/login", json={"email": email, "password": password}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.mark.asyncio
async def test_register_and_list(client, storage):
    response = await register(
        client, files={"validId": ("my id card.pdf", b"%PDF", "application/pdf")}
    )

    assert response.status_code == 201
    assert response.json()["success"] is True
    assert set(response.json()) == {"success", "message"}

    users = (await client.get("/users")).json()
    assert len(users) == 1
    assert users[0]["fullName"] == "John Doe"
    assert users[0]["validId"].endswith("_my_id_card.pdf")
    assert "password" not in users[0]
    assert "password_hash" not in users[0]

    (bucket, _), = storage.blobs
    assert bucket == "validid"


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    await register(client)
    response = await register(client, role="staff")

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Email already exists"}


@pytest.mark.asyncio
async def test_register_upstream_failure(client, mailer):
    mailer.fail = True

    response = await register(client)

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert (await client.get("/users")).json() == []


@pytest.mark.asyncio
async def test_list_by_role_and_get_by_id(client, staff):
    await register(client, email="boss@example.com", role="admin")

    staff_list = (await client.get("/users/role/staff")).json()
    assert [user["email"] for user in staff_list] == [staff.email]

    response = await client.get(f"/users/{staff.public_id}")
    assert response.status_code == 200
    assert response.json()["_id"] == staff.public_id

    missing = await client.get("/users/does-not-exist")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "message": "User not found"}


@pytest.mark.asyncio
async def test_verify(client, staff):
    response = await client.patch(f"/users/{staff.public_id}/verify")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert (await client.get(f"/users/{staff.public_id}")).json()["isVerified"] is True


@pytest.mark.asyncio
async def test_delete(client, service, staff, find_account):
    await service.ensure_superadmin("root@example.com", "R00t!Password")
    root = await find_account("root@example.com")

    forbidden = await client.delete(f"/users/{root.public_id}")
    assert forbidden.status_code == 403
    assert forbidden.json()["success"] is False

    deleted = await client.delete(f"/users/{staff.public_id}")
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True, "message": "User deleted successfully."}

    emails = [user["email"] for user in (await client.get("/users")).json()]
    assert emails == ["root@example.com"]


@pytest.mark.asyncio
async def test_me_requires_bearer_token(client, staff):
    unauthorized = await client.get("/users/me")
    assert unauthorized.status_code == 401
    assert unauthorized.json()["success"] is False

    invalid = await client.get("/users/me", headers={"Authorization": "Bearer nope"})
    assert invalid.status_code == 401

    response = await client.get(
        "/users/me", headers=await bearer(client, staff.email, "Ana4567")
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["email"] == staff.email
    assert "password" not in body["data"]


@pytest.mark.asyncio
async def test_upload_requirements(client, staff):
    anonymous = await client.post(
        "/users/upload-requirements", files={"resume": ("cv.pdf", b"cv", "application/pdf")}
    )
    assert anonymous.status_code == 401

    response = await client.post(
        "/users/upload-requirements",
        headers=await bearer(client, staff.email, "Ana4567"),
        files={"resume": ("my cv.pdf", b"cv", "application/pdf")},
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Requirements uploaded successfully."}
    me = (await client.get(f"/users/{staff.public_id}")).json()
    assert me["resume"].endswith("_my_cv.pdf")
    assert me["validId"] is None


@pytest.mark.asyncio
async def test_forgot_and_reset_password(client, staff, mailer):
    unknown = await client.post(
        "/users/forgot-password", json={"email": "nobody@example.com"}
    )
    assert unknown.status_code == 404

    missing = await client.post("/users/forgot-password", json={})
    assert missing.status_code == 400

    sent = await client.post("/users/forgot-password", json={"email": staff.email})
    assert sent.status_code == 200
    token = token_from(mailer.sent[-1]["text"])

    weak = await client.post(
        "/users/reset-password", json={"token": token, "newPassword": "abcdefgh"}
    )
    assert weak.status_code == 400

    reset = await client.post(
        "/users/reset-password", json={"token": token, "newPassword": "N3w!Password"}
    )
    assert reset.status_code == 200
    assert reset.json()["success"] is True

    replay = await client.post(
        "/users/reset-password", json={"token": token, "newPassword": "N3w!Password"}
    )
    assert replay.status_code == 400
    assert replay.json() == {"success": False, "message": "Invalid or expired token."}

    await bearer(client, staff.email, "N3w!Password")


@pytest.mark.asyncio
async def test_setup_password(client, mailer):
    await register(client)
    token = token_from(mailer.sent[0]["text"])

    response = await client.post(
        "/users/setup-password", json={"token": token, "newPassword": "Welc0me!Home"}
    )

    assert response.status_code == 200
    await bearer(client, "john@example.com", "Welc0me!Home")
    me = (await client.get("/users")).json()[0]
    assert me["isTemporaryPassword"] is False


@pytest.mark.asyncio
async def test_login_failure(client, staff):
    response = await client.post(
        "/users/login", json={"email": staff.email, "password": "wrong"}
    )
    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "message": "Invalid email and/or password",
    }
