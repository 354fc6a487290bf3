import asyncio

import httpx

from healthyaura.domain.schemas.recommendation import Coordinates, Recommendation
from tests.conftest import run, sign_in_as

PATH = "/home/recommendations"


def eateries(prefix: str, count: int) -> list[dict]:
    return [{"id": i, "name": f"{prefix} {i}", "tags": ["vegan"], "reviewCount": i} for i in range(1, count + 1)]


def recommendations_route(backend, personalized=None, nearby=None, nearby_status=200):
    def handler(request):
        if "lat" in request.url.params:
            if nearby_status != 200:
                return httpx.Response(nearby_status)
            return httpx.Response(200, json=nearby or [])
        return httpx.Response(200, json=personalized or [])

    backend.on("GET", PATH, handler=handler)


async def here():
    return Coordinates(lat=40.44, lng=-79.99)


async def denied():
    return None


class TestFetch:
    def test_signed_out_makes_no_requests(self, client, backend):
        result = run(client.recommendations.fetch(here))

        assert result.personalized == [] and result.nearby == []
        assert backend.calls == []

    def test_both_lists_truncated(self, client, backend):
        recommendations_route(backend, personalized=eateries("Green", 8), nearby=eateries("Near", 6))

        async def scenario():
            await sign_in_as(client, backend)
            return await client.recommendations.fetch(here)

        result = run(scenario())

        assert [r.name for r in result.personalized] == [f"Green {i}" for i in range(1, 6)]
        assert len(result.nearby) == 5
        assert result.location == Coordinates(lat=40.44, lng=-79.99)
        nearby_request = [r for r in backend.calls if "lat" in r.url.params][0]
        assert nearby_request.url.params["lat"] == "40.44"
        assert nearby_request.url.params["lng"] == "-79.99"

    def test_location_denied_keeps_personalized(self, client, backend):
        recommendations_route(backend, personalized=eateries("Green", 2), nearby=eateries("Near", 2))

        async def scenario():
            await sign_in_as(client, backend)
            return await client.recommendations.fetch(denied)

        result = run(scenario())

        assert len(result.personalized) == 2
        assert result.nearby == []
        assert result.location is None
        assert len(backend.calls) == 1

    def test_location_timeout_keeps_personalized(self, client, backend):
        recommendations_route(backend, personalized=eateries("Green", 3))

        async def never():
            await asyncio.sleep(5)
            return Coordinates(lat=0, lng=0)

        async def scenario():
            await sign_in_as(client, backend)
            return await client.recommendations.fetch(never)

        result = run(scenario())

        assert len(result.personalized) == 3
        assert result.nearby == []

    def test_locator_error_counts_as_no_location(self, client, backend):
        recommendations_route(backend, personalized=eateries("Green", 1))

        async def broken():
            raise PermissionError("location permission denied")

        async def scenario():
            await sign_in_as(client, backend)
            return await client.recommendations.fetch(broken)

        result = run(scenario())

        assert len(result.personalized) == 1
        assert result.nearby == []

    def test_nearby_failure_keeps_personalized(self, client, backend):
        recommendations_route(backend, personalized=eateries("Green", 2), nearby_status=500)

        async def scenario():
            await sign_in_as(client, backend)
            return await client.recommendations.fetch(here)

        result = run(scenario())

        assert len(result.personalized) == 2
        assert result.nearby == []
        assert result.location is not None

    def test_malformed_items_are_skipped(self, client, backend):
        recommendations_route(backend, personalized=[{"name": "No id"}, {"id": 2, "name": "Ok"}])

        async def scenario():
            await sign_in_as(client, backend)
            return await client.recommendations.fetch()

        result = run(scenario())

        assert [r.id for r in result.personalized] == [2]


class TestRecommendationSchema:
    def test_dietary_tags_alias(self):
        rec = Recommendation.model_validate({"id": 1, "name": "Leaf", "dietaryTags": "vegan, gluten-free"})

        assert rec.tags == ["vegan", "gluten-free"]
        assert rec.review_count == 0

    def test_tags_field(self):
        rec = Recommendation.model_validate({"id": 1, "name": "Leaf", "tags": ["keto"], "reviewCount": None})

        assert rec.tags == ["keto"]
        assert rec.review_count == 0
