"""
Static content shown on the portal's pages.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List


@dataclass(frozen=True)
class Venue:
    slug: str
    name: str
    city: str
    image: str

    @property
    def link(self) -> str:
        return f"/api/{self.slug}"

    def to_card(self) -> Dict[str, str]:
        return {"name": self.name, "image": self.image, "link": self.link}


@dataclass(frozen=True)
class TeamMember:
    name: str
    role: str
    image: str


INSTA_IMAGES = [
    "food.jpg", "drink.jpg", "pizza.jpg", "beerr.avif",
    "hand.png", "taco.png",
    "drum.png", "wine.png",
]

VENUES: List[Venue] = [
    Venue("brewestate", "BREWESTATE", "Chandigarh", "/images/brewestate.png"),
    Venue("boulevard", "BOULEVARD", "Chandigarh", "/images/boul.png"),
    Venue("kalaghoda", "KALA-GHODA", "Chandigarh", "/images/kalaghoda.jpg"),
    Venue("mobe", "MOBE", "Chandigarh", "/images/mobe.png"),
    Venue("paara", "PAARA - NIGHT CLUB", "Ludhiana", "/images/paara2.jpg"),
    Venue("romeo-ldh", "ROMEO LANE", "Ludhiana", "/images/romeolane.jpg"),
    Venue("luna-ldh", "LUNA - NIGHT CLUB", "Ludhiana", "/images/luna2.avif"),
    Venue("baklavi-ldh", "BAKLAVI - BAR & KITCHEN", "Ludhiana", "/images/baklavi.jpg"),
]

VENUES_BY_SLUG: Dict[str, Venue] = {venue.slug: venue for venue in VENUES}

TEAM: List[TeamMember] = [
    TeamMember("Ansh Vohra", "Back-End Web Developer", "/images/ansh.jpg"),
    TeamMember("Akhil Handa", "Back-End Web Developer", "/images/akhil.jpg"),
    TeamMember("Anmol Singh", "Back-End Web Developer", "/images/anmol11.jpg"),
]

INFO_PAGES: Dict[str, str] = {
    "faq": "Frequently Asked Questions",
    "ourservices": "Our Services",
    "contactus": "Contact Us",
}


def _venue_cards(city: str) -> List[Dict[str, str]]:
    return [venue.to_card() for venue in VENUES if venue.city == city]


def page_context(content_key: str) -> Dict[str, Any]:
    """Template variables for ``content_key``. Unknown keys raise ``KeyError``."""
    if content_key == "dashboard":
        return {"instaImages": INSTA_IMAGES}
    if content_key == "bars":
        return {"chdBars": _venue_cards("Chandigarh"), "ldhBars": _venue_cards("Ludhiana")}
    if content_key == "team":
        return {"team": [asdict(member) for member in TEAM]}
    if content_key == "reservation":
        return {"venues": [venue.to_card() for venue in VENUES]}
    if content_key in VENUES_BY_SLUG:
        return {"venue": VENUES_BY_SLUG[content_key]}
    if content_key in INFO_PAGES:
        return {"page_key": content_key, "title": INFO_PAGES[content_key]}
    raise KeyError(content_key)
