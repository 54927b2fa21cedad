"""Read-only demo speeches and the persisted/demo record reference.

Demo speeches never touch the content store. Callers resolve a raw id once
with :func:`resolve_ref` and dispatch on the returned type afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from talkstudio.errors import NotFound

DEMO_ID_PREFIX = "demo-speech-"
DEMO_TOKEN = "demo"

_LOADED_AT = datetime.now(UTC)


@dataclass(frozen=True)
class Persisted:
    id: str


@dataclass(frozen=True)
class Demo:
    id: str


RecordRef = Persisted | Demo


@dataclass(frozen=True)
class DemoSpeech:
    id: str
    title: str
    topic: str
    key_message: str
    audience_demographics: str
    speaker_background: str
    duration_minutes: int
    tone: str
    content: str
    status: str = "completed"
    created_at: datetime = _LOADED_AT
    updated_at: datetime = _LOADED_AT


DEMO_SPEECHES: tuple[DemoSpeech, ...] = (
    DemoSpeech(
        id="demo-speech-001",
        title="The Courage to Be Unfinished",
        topic="Personal Growth & Emotional Intelligence",
        key_message="Admitting what we don't know yet is the bravest thing we do.",
        audience_demographics=(
            "General audience, professionals, and anyone interested in personal "
            "development and honest leadership."
        ),
        speaker_background=(
            "Researcher who spent a decade interviewing teams about failure, "
            "feedback and trust."
        ),
        duration_minutes=18,
        tone="inspiring",
        content="""\
A few years ago I stood in front of my own research team and said three words I had avoided my whole career: I don't know.

The room went quiet. I expected disappointment. What I got instead was the best conversation we had ever had.

I study how groups handle failure. For ten years I have asked people one simple question: tell me about a time you were wrong in front of others. Almost everyone starts with the same sentence. It was the worst moment of my job.

And then, nearly every time, they tell me it was also the moment things started to get better.

Here is what the data says. Teams whose leaders admit uncertainty report more problems early. They fix mistakes faster. They trust each other more. Not a little more. Twice as often.

We treat being unfinished as weakness. But think about the people you trust most. Are they the ones who always have an answer? Or the ones who tell you the truth, including the truth that they are still figuring it out?

Courage is not the absence of doubt. Courage is saying the doubt out loud and staying in the room.

So here is my invitation. This week, find one moment where you would normally pretend. And instead, say it. I don't know yet. Let's find out together.

You may be surprised by who leans in.

Thank you.""",
    ),
    DemoSpeech(
        id="demo-speech-002",
        title="Why Cities Should Plant Shade",
        topic="Urban heat and public health",
        key_message="Trees are infrastructure, and shade is a public health tool.",
        audience_demographics="City council members, planners and engaged residents.",
        speaker_background="Public health analyst working on heat resilience programs.",
        duration_minutes=5,
        tone="persuasive",
        content="""\
Last summer, on the hottest day of the year, the pavement outside a bus stop in my city measured sixty degrees Celsius. Twenty meters away, under a single old oak, it was thirty-four.

Same street. Same sun. One tree.

Heat is the deadliest weather event we face, and it does not hit everyone equally. Neighborhoods with the fewest trees are the hottest, and they are usually the ones with the least money to cope.

The evidence is consistent. More canopy means fewer heat emergencies, lower energy bills and safer walks to school.

A tree costs less than a single ambulance call. It works every day for fifty years. It never needs a software update.

So I am asking for something simple. Treat shade like we treat roads and pipes. Budget for it. Maintain it. Measure it.

Plant the trees where people wait, walk and play. Start with the hottest blocks first.

Our grandchildren will stand in that shade. Let's give it to them.

Thank you.""",
    ),
)


def list_demo_speeches() -> list[DemoSpeech]:
    return list(DEMO_SPEECHES)


def get_demo_speech(speech_id: str) -> DemoSpeech:
    """Look up a demo speech by id; the bare ``demo`` token selects the first one."""
    if speech_id == DEMO_TOKEN:
        return DEMO_SPEECHES[0]
    for speech in DEMO_SPEECHES:
        if speech.id == speech_id:
            return speech
    raise NotFound("Speech not found")


def resolve_ref(raw_id: str) -> RecordRef:
    if raw_id == DEMO_TOKEN:
        return Demo(DEMO_SPEECHES[0].id)
    if raw_id.startswith(DEMO_ID_PREFIX):
        return Demo(raw_id)
    return Persisted(raw_id)
