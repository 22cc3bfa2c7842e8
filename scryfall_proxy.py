import html
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated, Iterable, Iterator, TextIO

import click
import httpx
import pyperclip
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

SCRYFALL_API_URL = "https://api.scryfall.com"

# seconds, per card request
REQUEST_TIMEOUT_SECONDS = 30.0

CARDS_PER_PAGE = 9

# counts must fit in a byte
MAX_CARD_COUNT = 255

# Define card dimensions in inches and convert to mm
CARD_WIDTH_IN = Decimal("2.5")
CARD_HEIGHT_IN = Decimal("3.5")

ONE_INCH_MM = Decimal("25.4")  # 1 inch to mm conversion.

CARD_WIDTH_MM = CARD_WIDTH_IN * ONE_INCH_MM  # Decimal("63.5")
CARD_HEIGHT_MM = CARD_HEIGHT_IN * ONE_INCH_MM  # Decimal("88.9")

# Page dimensions in mm
PAGE_WIDTH_MM = Decimal("215.9")  # 8.5"

PRINTER_STYLE_HTML = f"""
<style>
    body {{
        margin: 0;
        padding: 0;
        width: {PAGE_WIDTH_MM}mm;
    }}
    ul {{
        align-content: flex-start;
        display: flex;
        flex-wrap: wrap;
        list-style: none;
        margin: 0;
        padding: 0;
        page-break-inside: avoid;
    }}
    img {{
        height: {CARD_HEIGHT_MM.normalize()}mm;
        width: {CARD_WIDTH_MM.normalize()}mm;
    }}
</style>
"""

BEGIN_DOCUMENT_HTML = (
    "<!DOCTYPE html>"
    "<html>"
    f"<head>{PRINTER_STYLE_HTML}<title>Scryfall Proxy</title></head>"
    "<body>"
)

END_DOCUMENT_HTML = "</body></html>"

PAGE_HTML = "<ul>{}</ul>"

FACE_HTML = '<li><img src="{}"></li>'

INPUT_FORMAT_HELP = """
Input format per line is "<x> <y> <z>".
    • <x> is the card count in the deck.
    • <y> is the scryfall card set.
    • <z> is the scryfall card code.
"""

COUNT_RE = re.compile(r"\+?[0-9]+")


class ScryfallProxyError(click.ClickException):
    """Base for every failure that aborts a run. click reports it and exits 1."""

    default_message = "Proxy generation failed."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class InvalidCardCountError(ScryfallProxyError):
    default_message = (
        INPUT_FORMAT_HELP
        + f"\n<x> failed to parse as a positive integer less than {MAX_CARD_COUNT + 1}."
    )


class MalformedLineError(ScryfallProxyError):
    default_message = "\nInput parse failed." + INPUT_FORMAT_HELP


class ParseStdinError(ScryfallProxyError):
    default_message = "STDIN failed to parse."


class WebRequestError(ScryfallProxyError):
    default_message = "Card web request failed."


class WebRequestBodyParseError(ScryfallProxyError):
    default_message = (
        "Card web request downloaded successfully, but the body was malformed."
    )


class ParseJsonError(ScryfallProxyError):
    default_message = (
        "JSON response parsing failed. However, the actual web request succeeded."
    )


@dataclass(frozen=True)
class CardRequest:
    count: int
    set_code: str
    card_code: str

    def url(self, api_url: str = SCRYFALL_API_URL) -> str:
        return f"{api_url.rstrip('/')}/cards/{self.set_code}/{self.card_code}"


@dataclass(frozen=True)
class Face:
    """One printable side of one physical card."""

    image_url: str


class ScryfallImageUris(BaseModel):
    large: str


class ScryfallCardFace(BaseModel):
    """A card printed from a single image, e.g. a normal or adventure card."""

    image_uris: ScryfallImageUris

    def faces(self) -> list[Face]:
        return [Face(self.image_uris.large)]


class ScryfallMultiFaceCard(BaseModel):
    """A card with its own image per face, e.g. transform and modal double faced cards."""

    card_faces: list[ScryfallCardFace]

    def faces(self) -> list[Face]:
        return [f for card_face in self.card_faces for f in card_face.faces()]


# a response with top level image_uris wins, even when it also lists card_faces
ScryfallCardResponse = Annotated[
    ScryfallCardFace | ScryfallMultiFaceCard, Field(union_mode="left_to_right")
]

card_response_adapter = TypeAdapter(ScryfallCardResponse)


def parse_line(line: str) -> CardRequest:
    """
    parses a single "<count> <set code> <card code>" deck list line.
    tokens are separated by exactly one space, anything after the third token is ignored.
    """
    tokens = line.split(" ")

    count_token = tokens[0]
    if COUNT_RE.fullmatch(count_token) is None:
        raise InvalidCardCountError()

    # long digit runs can't go through int(), and anything past 3 significant digits is out of range
    digits = count_token.removeprefix("+").lstrip("0") or "0"
    if len(digits) > 3 or int(digits) > MAX_CARD_COUNT:
        raise InvalidCardCountError()

    count = int(digits)

    if len(tokens) < 3:
        raise MalformedLineError()

    return CardRequest(count=count, set_code=tokens[1], card_code=tokens[2])


def fetch_card_json(
    card: CardRequest,
    api_url: str = SCRYFALL_API_URL,
    timeout: float | None = REQUEST_TIMEOUT_SECONDS,
) -> str:
    """
    Look up a single card on scryfall.

    The status code is not checked, an error body still goes on to parsing where it
    fails to match either card shape.

    Raises:
        WebRequestError: the request could not be sent or no response arrived
        WebRequestBodyParseError: the body could not be read or decoded as text
    """
    try:
        with httpx.stream(
            "GET", card.url(api_url), timeout=timeout, follow_redirects=True
        ) as resp:
            try:
                body = resp.read()
            except httpx.HTTPError as e:
                raise WebRequestBodyParseError() from e
            encoding = resp.encoding or "utf-8"
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise WebRequestError() from e

    try:
        return body.decode(encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise WebRequestBodyParseError() from e


def parse_card_faces(data: str) -> list[Face]:
    try:
        card = card_response_adapter.validate_json(data)
    except ValidationError as e:
        raise ParseJsonError() from e

    return card.faces()


def replicate_faces(faces: list[Face], count: int) -> list[Face]:
    """the whole face sequence once per copy, so a two faced card prints front, back, front, back"""
    return [f for _ in range(count) for f in faces]


def paginate(faces: list[Face], cards_per_page: int = CARDS_PER_PAGE) -> list[list[Face]]:
    return [
        faces[start : start + cards_per_page]
        for start in range(0, len(faces), cards_per_page)
    ]


def render_document(pages: Iterable[list[Face]]) -> str:
    body = "".join(
        PAGE_HTML.format(
            "".join(FACE_HTML.format(html.escape(f.image_url)) for f in page)
        )
        for page in pages
    )
    return BEGIN_DOCUMENT_HTML + body + END_DOCUMENT_HTML


def iter_deck_lines(stream: Iterable[str]) -> Iterator[str]:
    """yields each line of the deck list without its line ending"""
    try:
        for line in stream:
            yield line.removesuffix("\n").removesuffix("\r")
    except (UnicodeDecodeError, OSError) as e:
        raise ParseStdinError() from e


def generate_proxy_html(
    lines: Iterable[str],
    api_url: str = SCRYFALL_API_URL,
    timeout: float | None = REQUEST_TIMEOUT_SECONDS,
    verbose: bool = False,
) -> str:
    """
    Turns deck list lines into the printable HTML document.

    Every line is fetched before the next one is read. The first error aborts the
    whole run, so either every card makes it into the document or nothing is rendered.
    """
    faces: list[Face] = []

    for line in iter_deck_lines(lines):
        card = parse_line(line)

        if verbose:
            click.echo(f"Fetching {card.count}x {card.set_code} {card.card_code}", err=True)

        card_faces = parse_card_faces(fetch_card_json(card, api_url, timeout))
        faces.extend(replicate_faces(card_faces, card.count))

    pages = paginate(faces)

    if verbose:
        click.echo(f"{len(faces)} total faces -- {len(pages)} pages.", err=True)

    return render_document(pages)


def read_clipboard_lines() -> list[str]:
    try:
        data: str = pyperclip.paste()
    except pyperclip.PyperclipException as e:
        raise ParseStdinError("Clipboard failed to read.") from e

    return data.splitlines()


@click.command(
    "scryfall-proxy",
    short_help="Generates a printable HTML sheet of scryfall card images.",
)
@click.argument(
    "deck_list", type=click.File("r", encoding="utf-8", errors="strict"), default="-"
)
@click.option(
    "-o",
    "--output",
    type=click.File("w", encoding="utf-8", lazy=True),
    default="-",
    help="Where to write the HTML document.",
)
@click.option(
    "--api-url",
    envvar="SCRYFALL_API_URL",
    default=SCRYFALL_API_URL,
    show_default=True,
    help="Base URL of the scryfall API.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=REQUEST_TIMEOUT_SECONDS,
    show_default=True,
    help="Seconds to wait on each card request.",
)
@click.option(
    "--clipboard",
    is_flag=True,
    default=False,
    help="Read the deck list from the clipboard instead of DECK_LIST.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Report progress on stderr.")
def cli(
    deck_list: TextIO,
    output: TextIO,
    api_url: str,
    timeout: float,
    clipboard: bool,
    verbose: bool,
):
    """
    Reads "<count> <set code> <card code>" lines from DECK_LIST (stdin by default)
    and writes an HTML page of the card images, 9 to a printed page.
    """
    lines = read_clipboard_lines() if clipboard else deck_list

    document = generate_proxy_html(lines, api_url=api_url, timeout=timeout, verbose=verbose)

    click.echo(document, file=output)


if __name__ == "__main__":
    cli()
