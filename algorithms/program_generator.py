from typing import Optional

from .math_tools import MathTools

# Marker for the day 2 opener whose label and percentage change weekly.
DEADLIFT_WEEK = "deadlift_week"


class ProgramGenerator:
    """Five-day split with working weights taken as percentages of the 1RMs.

    Each exercise is ``(name, scheme, lift, value)``: ``lift`` names the 1RM
    the percentage ``value`` applies to, or is ``None`` when ``value`` is a
    fixed weight (or ``None`` for bodyweight/self-selected loads).
    """

    DEADLIFT_WEEKS = {
        1: ("RDL 3x10", 0.25),
        2: ("DL 4x5 light", 0.35),
        3: ("DL 3x3", 0.55),
        4: ("DL 3x2", 0.75),
        5: ("DL 3x3 heavier", 0.65),
        6: ("DL 3x2 heavier", 0.8),
    }
    TEST_WEEK = ("DL 1-3RM test day", 0.9)

    DAYS = [
        (
            "Day 1 - Push (Heavy Chest)",
            [
                ("Bench Press (wide) - heavy", "5x3-5", "bench", 0.82),
                ("Incline DB Press", "4x8", None, 16.0),
                ("Weighted Dips", "3x5-8", None, None),
                ("Machine Chest Press", "3x10", None, None),
                ("Cable Flyes", "3x12", None, None),
                ("Tricep Pushdown", "2x15", None, 20.0),
            ],
        ),
        (
            "Day 2 - Pull (Strength + DL)",
            [
                (DEADLIFT_WEEK, "", "deadlift", None),
                ("Bent Over Row", "4x6", "deadlift", 0.45),
                ("Weighted Pull-Ups", "4x5", None, None),
                ("Lat Pulldown", "3x8", None, None),
                ("Cable Row", "3x10", None, None),
                ("Face Pulls", "3x15", None, None),
                ("Hammer Curls", "3x10", None, 16.0),
            ],
        ),
        (
            "Day 3 - Legs (Power)",
            [
                ("Squat", "5x5", "squat", 0.75),
                ("Leg Press", "4x10", None, 95.0),
                ("RDL (light)", "3x8-10", "deadlift", 0.35),
                ("Leg Extension", "3x12", None, None),
                ("Hamstring Curl", "3x12", None, None),
                ("Calves", "3x15-20", None, None),
            ],
        ),
        (
            "Day 4 - Push (Volume)",
            [
                ("Bench Press - volume", "4x8", "bench", 0.62),
                ("Incline Smith Press", "4x10", None, None),
                ("Chest Dips (bw)", "3x10-12", None, None),
                ("Lateral Raises", "4x15", None, None),
                ("Overhead Press", "3x6", "bench", 0.4),
                ("Cable Flyes", "3x12", None, None),
                ("Rope Tricep Ext", "3x12", None, None),
            ],
        ),
        (
            "Day 5 - Pull (Volume)",
            [
                ("Pull-Ups (strict)", "3x8", None, None),
                ("Seated Row", "4x12", None, None),
                ("Single Arm Lat Pulldown", "3x10", None, None),
                ("DB Row", "3x12", None, None),
                ("Rear Delt Machine", "3x15", None, None),
                ("Barbell Curls", "3x10", None, None),
                ("Concentration Curls", "2x12", None, None),
            ],
        ),
    ]

    def __init__(self, increment: float = MathTools.PLATE_INCREMENT) -> None:
        self.increment = increment

    def _pct(self, orm: Optional[float], pct: float) -> Optional[float]:
        if not orm or orm <= 0:
            return None
        return MathTools.percentage(orm, pct, self.increment)

    def deadlift_week(self, week: int, deadlift: Optional[float]) -> dict:
        label, pct = self.DEADLIFT_WEEKS.get(max(week, 1), self.TEST_WEEK)
        return {"label": label, "weight": self._pct(deadlift, pct)}

    def generate(
        self,
        bench: Optional[float],
        squat: Optional[float],
        deadlift: Optional[float],
        week: int = 1,
        warmup_sets: int = 0,
    ) -> list[dict]:
        """Return the week's five training days with their target weights."""
        orms = {"bench": bench, "squat": squat, "deadlift": deadlift}
        program = []
        for title, exercises in self.DAYS:
            entries = []
            for name, scheme, lift, value in exercises:
                if name == DEADLIFT_WEEK:
                    dl = self.deadlift_week(week, deadlift)
                    name, weight = dl["label"], dl["weight"]
                elif lift is not None:
                    weight = self._pct(orms[lift], value)
                else:
                    weight = value
                entry = {"name": name, "sets": scheme, "weight": weight}
                if warmup_sets and lift is not None and weight:
                    entry["warmup"] = MathTools.warmup_weights(weight, warmup_sets, self.increment)
                entries.append(entry)
            program.append({"title": title, "exercises": entries})
        return program
