from liftlog.schemas import BODYWEIGHT, CandidateExercise


def _num(value: int | None) -> str:
    return str(value) if value else "?"


def format_last_used(exercise: CandidateExercise) -> str | None:
    """Short "last time" hint shown next to a suggestion, e.g. ``80kg - 3x8``."""
    values = (
        exercise.last_weight,
        exercise.last_sets,
        exercise.last_reps,
        exercise.last_effective_reps_max,
        exercise.last_effective_reps_target,
    )
    if not any(values):
        return None

    if exercise.last_weight == BODYWEIGHT:
        weight = BODYWEIGHT
    elif exercise.last_weight:
        weight = f"{exercise.last_weight}kg"
    else:
        weight = ""

    if exercise.use_effective_reps:
        detail = f"{_num(exercise.last_effective_reps_max)}/{_num(exercise.last_effective_reps_target)} ER"
    else:
        detail = f"{_num(exercise.last_sets)}x{_num(exercise.last_reps)}"
    return f"{weight} - {detail}".strip()


__all__ = ["format_last_used"]
