from unittest import TestCase

from fastapi import APIRouter, FastAPI, Request
from fastapi.testclient import TestClient

from torrlink import middleware


def make_request(**scope) -> Request:
    return Request({"type": "http", "method": "GET", "path": "/", "headers": [], **scope})


class TestGetRouteHandler(TestCase):
    def test_matched_route(self):
        router = APIRouter()

        @router.get("/things/{thing_id}")
        async def get_thing(thing_id: str):
            return {}

        [route] = router.routes
        self.assertEqual(middleware.get_route_handler(make_request(route=route)), "get_thing")

    def test_no_route(self):
        self.assertIsNone(middleware.get_route_handler(make_request()))

    def test_route_without_name(self):
        self.assertIsNone(middleware.get_route_handler(make_request(route=object())))


class TestMiddlewareStack(TestCase):
    def setUp(self):
        app = FastAPI()
        app.add_middleware(middleware.Metrics)
        app.add_middleware(middleware.RequestLogger)
        app.add_middleware(middleware.RequestID)

        router = APIRouter()

        @router.get("/included/{name}")
        async def included(name: str):
            return {"name": name}

        @app.get("/direct")
        async def direct():
            return {}

        app.include_router(router)
        self.client = TestClient(app)

    def test_routed_requests(self):
        response = self.client.get("/included/abc", headers={"X-Request-ID": "rid-1"})
        self.assertEqual(200, response.status_code)
        self.assertEqual("rid-1", response.headers["X-Request-ID"])
        self.assertEqual(200, self.client.get("/direct").status_code)

    def test_unrouted_request(self):
        self.assertEqual(404, self.client.get("/missing").status_code)
