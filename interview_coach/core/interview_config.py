"""Experience level → interview shape.

Levels outside 0..4 (or anything that is not an int) resolve to the Junior
tier. That is the defined behavior, not an error: validation of user input
happens in the session engine before this is called.
"""

from pydantic import BaseModel

DEFAULT_EXPERIENCE_LEVEL = 1


class InterviewConfig(BaseModel):
    experience_level: int
    level_name: str
    question_count: int
    seconds_per_question: int
    total_estimated_minutes: int


_CONFIG_TABLE: dict[int, InterviewConfig] = {
    0: InterviewConfig(
        experience_level=0, level_name="Fresher", question_count=8, seconds_per_question=180, total_estimated_minutes=24
    ),
    1: InterviewConfig(
        experience_level=1, level_name="Junior", question_count=10, seconds_per_question=180, total_estimated_minutes=30
    ),
    2: InterviewConfig(
        experience_level=2,
        level_name="Mid-Level",
        question_count=10,
        seconds_per_question=240,
        total_estimated_minutes=40,
    ),
    3: InterviewConfig(
        experience_level=3, level_name="Senior", question_count=12, seconds_per_question=300, total_estimated_minutes=60
    ),
    4: InterviewConfig(
        experience_level=4, level_name="Expert", question_count=15, seconds_per_question=300, total_estimated_minutes=75
    ),
}


def is_valid_experience_level(experience_level: object) -> bool:
    # bool is an int subclass; True must not sneak in as level 1
    return (
        isinstance(experience_level, int)
        and not isinstance(experience_level, bool)
        and experience_level in _CONFIG_TABLE
    )


def resolve_interview_config(experience_level: object) -> InterviewConfig:
    """Return the config tier for a level, defaulting to Junior."""
    if not is_valid_experience_level(experience_level):
        experience_level = DEFAULT_EXPERIENCE_LEVEL
    return _CONFIG_TABLE[experience_level].model_copy()


def experience_level_name(experience_level: object) -> str:
    return resolve_interview_config(experience_level).level_name
