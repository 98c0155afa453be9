"""Protein-balanced search prompts for candidate retrieval.

For each meal type the planner emits exactly K distinct search phrases, where
K is the number of distinct recipes wanted. Primary proteins are assigned
round-robin over the groups the preferences allow, so no group is used more
than ceil(K / n_groups) times.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from meal_composer.collaborators import CandidateRetriever
from meal_composer.errors import CollaboratorError, DiversityError, MealComposerError
from meal_composer.ingredient_groups import GROUP_EXAMPLES, MEAT_GROUPS, primary_group
from meal_composer.models import MealType
from meal_composer.preferences import Preferences

logger = logging.getLogger(__name__)

# Default protein groups per meal type, most typical first
MEAL_TYPE_GROUPS: dict[MealType, list[str]] = {
    MealType.BREAKFAST: ["eggs", "dairy", "grains", "pork", "poultry", "tofu"],
    MealType.LUNCH: [
        "poultry",
        "legumes",
        "seafood",
        "beef",
        "tofu",
        "pasta",
        "vegetables",
        "pork",
    ],
    MealType.DINNER: [
        "poultry",
        "beef",
        "seafood",
        "pork",
        "legumes",
        "tofu",
        "pasta",
        "lamb",
        "vegetables",
    ],
}

STYLE_WORDS: dict[MealType, list[str]] = {
    MealType.BREAKFAST: ["bowl", "scramble", "bake", "toast", "muffins"],
    MealType.LUNCH: ["salad", "wrap", "bowl", "soup", "sandwich"],
    MealType.DINNER: ["skillet", "roast", "stir-fry", "curry", "bake", "stew"],
}

# Dietary restriction -> groups it rules out
DIET_EXCLUSIONS: dict[str, tuple[str, ...]] = {
    "vegan": MEAT_GROUPS + ("seafood", "eggs", "dairy"),
    "vegetarian": MEAT_GROUPS + ("seafood",),
    "pescatarian": MEAT_GROUPS,
    "dairy-free": ("dairy",),
    "gluten-free": ("pasta",),
    "keto": ("pasta", "grains", "legumes"),
    "paleo": ("legumes", "dairy", "grains", "pasta", "tofu"),
}

# Allergy -> groups it rules out
ALLERGY_EXCLUSIONS: dict[str, tuple[str, ...]] = {
    "shellfish": ("seafood",),
    "fish": ("seafood",),
    "egg": ("eggs",),
    "soy": ("tofu",),
    "wheat": ("pasta",),
    "gluten": ("pasta",),
    "dairy": ("dairy",),
    "milk": ("dairy",),
}

FALLBACK_GROUP = "vegetables"


@dataclass(frozen=True)
class SearchPrompt:
    meal_type: MealType
    phrase: str
    primary_group: str | None


def allowed_groups(preferences: Preferences, meal_type: MealType) -> list[str]:
    """Protein groups compatible with the preferences, favored groups first."""
    banned: set[str] = set()
    for restriction, groups in DIET_EXCLUSIONS.items():
        if preferences.has_restriction(restriction):
            banned.update(groups)
    for allergy, groups in ALLERGY_EXCLUSIONS.items():
        if preferences.has_allergy(allergy):
            banned.update(groups)
    for ingredient in preferences.excluded_ingredients:
        group = primary_group(ingredient)
        if group:
            banned.add(group)

    groups = [g for g in MEAL_TYPE_GROUPS[meal_type] if g not in banned]

    favored: list[str] = []
    for ingredient in preferences.favored_ingredients:
        group = primary_group(ingredient)
        if group and group not in banned and group not in favored:
            favored.append(group)
    groups = favored + [g for g in groups if g not in favored]

    if not groups:
        logger.debug("No protein groups left for %s, using %s", meal_type.value, FALLBACK_GROUP)
        return [FALLBACK_GROUP]
    return groups


def _phrase(
    meal_type: MealType,
    flavor: str,
    protein: str,
    style: str,
    max_minutes: int | None,
) -> str:
    words = [flavor, protein, style, meal_type.value]
    phrase = " ".join(w for w in words if w)
    if max_minutes:
        phrase += f" under {max_minutes} minutes"
    return phrase


def _prompts_for(
    meal_type: MealType,
    count: int,
    preferences: Preferences,
) -> list[SearchPrompt]:
    groups = allowed_groups(preferences, meal_type)
    styles = STYLE_WORDS[meal_type]
    flavors = [f.lower() for f in preferences.flavors] or [""]
    max_minutes = preferences.max_minutes

    prompts: list[SearchPrompt] = []
    seen: set[str] = set()
    group_uses: dict[str, int] = {}
    for i in range(count):
        group = groups[i % len(groups)]
        use = group_uses.get(group, 0)
        group_uses[group] = use + 1
        examples = GROUP_EXAMPLES.get(group, [group])
        protein = examples[use % len(examples)]

        attempt = 0
        while True:
            flavor = flavors[(i + attempt) % len(flavors)]
            style = styles[(i + attempt) % len(styles)]
            phrase = _phrase(meal_type, flavor, protein, style, max_minutes)
            if attempt >= len(styles) * len(flavors):
                phrase = f"{phrase} variation {attempt}"
            if phrase.lower() not in seen:
                break
            attempt += 1

        seen.add(phrase.lower())
        prompts.append(SearchPrompt(meal_type, phrase, group))
    return prompts


def plan_search_prompts(
    preferences: Preferences,
    distinct_counts: dict[MealType, int],
) -> dict[MealType, list[SearchPrompt]]:
    """Exactly K distinct, protein-balanced prompts per meal type."""
    batches: dict[MealType, list[SearchPrompt]] = {}
    for meal_type in MealType:
        count = distinct_counts.get(meal_type, 0)
        if count <= 0:
            continue
        prompts = _prompts_for(meal_type, count, preferences)
        check_prompt_balance(prompts, allowed_groups(preferences, meal_type))
        batches[meal_type] = prompts
        logger.debug(
            "%s prompts: %s",
            meal_type.value,
            "; ".join(p.phrase for p in prompts),
        )
    return batches


def check_prompt_balance(prompts: list[SearchPrompt], groups: list[str]) -> None:
    """Raise DiversityError unless phrases are distinct and groups balanced."""
    if not prompts:
        return

    seen: set[str] = set()
    for prompt in prompts:
        key = prompt.phrase.strip().lower()
        if key in seen:
            raise DiversityError(f"Duplicate search phrase: '{prompt.phrase}'")
        seen.add(key)

    ceiling = math.ceil(len(prompts) / max(1, len(groups)))
    uses: dict[str, int] = {}
    for prompt in prompts:
        if prompt.primary_group is None:
            continue
        uses[prompt.primary_group] = uses.get(prompt.primary_group, 0) + 1
    for group, n in sorted(uses.items()):
        if n > ceiling:
            raise DiversityError(
                f"Protein group '{group}' used {n} times; at most {ceiling} "
                f"allowed for {len(prompts)} prompts"
            )


def gather_candidates(
    retriever: CandidateRetriever,
    prompts: dict[MealType, list[SearchPrompt]],
    match_count: int,
    max_minutes: int | None = None,
) -> dict[MealType, list[str]]:
    """Query the retriever once per prompt; ids interleaved by rank, de-duplicated."""
    candidates: dict[MealType, list[str]] = {}
    for meal_type, batch in prompts.items():
        per_prompt: list[list[str]] = []
        for prompt in batch:
            try:
                ids = retriever.search(
                    prompt.phrase, meal_type, match_count, max_minutes=max_minutes
                )
            except MealComposerError:
                raise
            except Exception as e:
                raise CollaboratorError(
                    f"Candidate search failed for '{prompt.phrase}': {e}"
                ) from e
            logger.debug("'%s' -> %d matches", prompt.phrase, len(ids))
            per_prompt.append(list(ids))

        ordered: list[str] = []
        depth = max((len(ids) for ids in per_prompt), default=0)
        for rank in range(depth):
            for ids in per_prompt:
                if rank < len(ids) and ids[rank] not in ordered:
                    ordered.append(ids[rank])
        candidates[meal_type] = ordered
        logger.info("%s: %d candidate recipes", meal_type.value, len(ordered))
    return candidates
