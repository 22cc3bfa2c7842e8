from typing import Any

import pytest

LARGE_IMAGE = "https://cards.scryfall.io/large/front/{}.jpg"


def single_face_card(image_id: str) -> dict[str, Any]:
    return {
        "object": "card",
        "name": "Lightning Bolt",
        "set": "clu",
        "collector_number": "141",
        "layout": "normal",
        "image_uris": {
            "small": "https://cards.scryfall.io/small/front/x.jpg",
            "png": "https://cards.scryfall.io/png/front/x.png",
            "large": LARGE_IMAGE.format(image_id),
        },
    }


def multi_face_card(*image_ids: str) -> dict[str, Any]:
    return {
        "object": "card",
        "name": "Delver of Secrets // Insectile Aberration",
        "set": "isd",
        "collector_number": "51",
        "layout": "transform",
        "card_faces": [
            {
                "object": "card_face",
                "name": f"face {image_id}",
                "image_uris": {"large": LARGE_IMAGE.format(image_id)},
            }
            for image_id in image_ids
        ],
    }


@pytest.fixture
def bolt() -> dict[str, Any]:
    return single_face_card("bolt")


@pytest.fixture
def delver() -> dict[str, Any]:
    return multi_face_card("delver", "aberration")


@pytest.fixture
def not_found() -> dict[str, Any]:
    """Scryfall's body for an unknown set/collector number."""
    return {
        "object": "error",
        "code": "not_found",
        "status": 404,
        "details": "No card found with the given ID or set code and collector number.",
    }
