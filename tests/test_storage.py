"""
Tests for the local storage emulation and its signed-URL route.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from conecta2.baas.errors import BaasError


@pytest.fixture
def bucket(baas):
    return baas.storage.from_("purchase-attachments")


class TestBucket:
    def test_upload_and_download(self, bucket):
        bucket.upload("abc/cotizacion.pdf", b"%PDF-1.4", "application/pdf")

        assert bucket.exists("abc/cotizacion.pdf")
        assert bucket.download("abc/cotizacion.pdf") == b"%PDF-1.4"

    def test_existing_object_needs_upsert(self, bucket):
        bucket.upload("abc/a.txt", b"uno")

        with pytest.raises(BaasError) as excinfo:
            bucket.upload("abc/a.txt", b"dos")
        bucket.upload("abc/a.txt", b"tres", upsert=True)

        assert excinfo.value.status == 409
        assert bucket.download("abc/a.txt") == b"tres"

    def test_path_cannot_escape_bucket(self, bucket):
        with pytest.raises(BaasError) as excinfo:
            bucket.upload("../travel-receipts/x.txt", b"x")

        assert excinfo.value.code == "InvalidKey"

    def test_signed_url_for_missing_object(self, bucket):
        with pytest.raises(BaasError) as excinfo:
            bucket.create_signed_url("abc/none.pdf", 60)

        assert excinfo.value.status == 404


class TestSignedRoute:
    def test_round_trip(self, api, bucket):
        bucket.upload("abc/Informe final.pdf", b"contenido", "application/pdf")
        url = bucket.create_signed_url("abc/Informe final.pdf", 60)

        response = api.get(url)

        assert response.status_code == 200
        assert response.content == b"contenido"
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"].startswith("inline")

    def test_bad_token(self, api, bucket):
        bucket.upload("abc/a.pdf", b"x")

        response = api.get("/storage/v1/object/sign/purchase-attachments/abc/a.pdf", params={"token": "basura"})

        assert response.status_code == 400

    def test_token_for_another_object(self, api, bucket):
        bucket.upload("abc/a.pdf", b"a")
        bucket.upload("abc/b.pdf", b"b")
        token = parse_qs(urlparse(bucket.create_signed_url("abc/a.pdf", 60)).query)["token"][0]

        response = api.get("/storage/v1/object/sign/purchase-attachments/abc/b.pdf", params={"token": token})

        assert response.status_code == 400
        assert response.json()["detail"] == "La firma no corresponde al objeto"
