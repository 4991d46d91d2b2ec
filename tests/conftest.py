"""Shared fixtures: a collision-free embedder and the end-to-end source sets."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List

import pytest

from thematic.config.settings import Settings

_WORD = re.compile(r"[a-z]+")

# Five sub-topics, each built around one phrase repeated in three sentences.
# Every other word occurs once so the phrases dominate keyword ranking.
_COHERENT_BODY = (
    "Flexible scheduling allowed nurses to balance childcare duties. "
    "Hospital managers said flexible scheduling reduced overtime costs. "
    "Several interviewees described flexible scheduling as essential for retention. "
    "Peer mentoring helped junior staff navigate unfamiliar wards. "
    "Formal peer mentoring programmes improved confidence among graduates. "
    "Participants valued peer mentoring during stressful night shifts. "
    "Workplace burnout emerged after consecutive twelve hour rotations. "
    "Chronic understaffing intensified workplace burnout across departments. "
    "Supervisors rarely recognised workplace burnout until resignations rose. "
    "Digital documentation slowed bedside care during system outages. "
    "Younger clinicians adapted quickly to digital documentation tools. "
    "Auditors praised digital documentation for traceable medication records. "
    "Patient advocacy motivated many respondents despite heavy workloads. "
    "Ethics committees supported patient advocacy in complex discharge decisions. "
    "Newcomers learned patient advocacy from experienced charge colleagues."
)

COHERENT_THEMES = {
    "Digital Documentation",
    "Flexible",
    "Patient Advocacy",
    "Peer",
    "Workplace Burnout",
}

_UNRELATED_TOPICS: List[List[str]] = [
    ["coral", "reef", "bleaching", "ocean", "acidity", "plankton"],
    ["medieval", "castle", "siege", "knights", "fortress", "drawbridge"],
    ["quantum", "entanglement", "photon", "qubit", "decoherence", "superposition"],
    ["sourdough", "yeast", "flour", "baking", "crust", "fermentation"],
    ["glacier", "moraine", "crevasse", "icefield", "calving", "meltwater"],
    ["jazz", "saxophone", "improvisation", "bebop", "rhythm", "trumpet"],
    ["volcano", "magma", "eruption", "lava", "caldera", "pyroclastic"],
    ["chess", "opening", "gambit", "endgame", "checkmate", "bishop"],
    ["orchid", "pollinator", "nectar", "petal", "greenhouse", "epiphyte"],
    ["cryptocurrency", "blockchain", "ledger", "mining", "wallet", "token"],
    ["marathon", "stamina", "sprint", "training", "hydration", "pacing"],
]


class VocabularyEmbedder:
    """One dimension per distinct word so unrelated labels never collide."""

    def __init__(self, dimensions: int = 2048) -> None:
        self.dimensions = dimensions
        self.vocabulary: Dict[str, int] = {}
        self.calls = 0

    def __call__(self, text: str) -> List[float]:
        self.calls += 1
        vector = [0.0] * self.dimensions
        for token in _WORD.findall(text.lower()):
            if len(token) < 3:
                continue
            index = self.vocabulary.setdefault(token, len(self.vocabulary) + 1)
            vector[index] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector


def coherent_content(index: int) -> str:
    intro = (
        f"Interview study {index} explored everyday working conditions reported by registered "
        "practitioners employed within metropolitan teaching hospitals and smaller regional facilities. "
        "Researchers transcribed each conversation verbatim, coded recurring ideas inductively, then "
        "compared accounts between wards, professional grades and employment contracts over eighteen months. "
    )
    return intro + _COHERENT_BODY


def unrelated_content(words: List[str]) -> str:
    rotations = [words[i:] + words[:i] for i in range(len(words))]
    sentences = [" ".join(rotation) for rotation in rotations]
    sentences.extend(" ".join(reversed(rotation)) for rotation in rotations)
    return ". ".join(sentences) + "."


@pytest.fixture()
def embedder() -> VocabularyEmbedder:
    return VocabularyEmbedder()


@pytest.fixture()
def coherent_sources() -> List[Dict[str, object]]:
    return [
        {
            "id": f"paper-{index:02d}",
            "type": "paper",
            "title": f"Nursing workforce interviews {index}",
            "content": coherent_content(index),
            "metadata": {"contentType": "abstract", "doi": f"10.1000/nurse.{index:02d}"},
        }
        for index in range(11)
    ]


@pytest.fixture()
def truncated_sources(coherent_sources: List[Dict[str, object]]) -> List[Dict[str, object]]:
    return [{**source, "content": str(source["content"])[:10]} for source in coherent_sources]


@pytest.fixture()
def unrelated_sources() -> List[Dict[str, object]]:
    return [
        {
            "id": f"topic-{index:02d}",
            "type": "paper",
            "title": words[0].title(),
            "content": unrelated_content(words),
        }
        for index, words in enumerate(_UNRELATED_TOPICS)
    ]


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        config_dir=tmp_path / "config",
        create_dirs=False,
        paths={"output_dir": tmp_path / "output", "logs_dir": tmp_path / "logs"},
    )


@pytest.fixture()
def coherent_themes() -> set:
    return set(COHERENT_THEMES)
