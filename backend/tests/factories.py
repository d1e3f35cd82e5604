from golf_scheduler.utils.schedule_values import (
    AFTERNOON,
    MORNING,
    Foursome,
    PlayerSnapshot,
    Schedule,
    WeekSnapshot,
    foursome_id,
)


def roster(count, time_preference="Either", availability="available"):
    """Player specs for the seed_week fixture, alternating handedness"""
    return [(f"P{i}", "left" if i % 2 else "right", time_preference, availability) for i in range(count)]


def snapshot(player_id, time_preference="Either", handedness="right", season_id=1):
    return PlayerSnapshot(
        id=player_id,
        first_name=f"P{player_id}",
        last_name="Golfer",
        handedness=handedness,
        time_preference=time_preference,
        season_id=season_id,
    )


def week_snapshot(statuses, week_id=1, season_id=1):
    """statuses: {player_id: "available" | "unavailable"}"""
    return WeekSnapshot(id=week_id, season_id=season_id, week_number=1, date=None, availability=statuses)


def make_schedule(morning_groups, afternoon_groups=(), week_id=1):
    """Build a Schedule from lists of PlayerSnapshot groups"""

    def foursomes(slot, groups):
        return tuple(
            Foursome(id=foursome_id(week_id, slot, i), time_slot=slot, position=i, players=tuple(group))
            for i, group in enumerate(groups)
        )

    return Schedule(
        week_id=week_id,
        morning=foursomes(MORNING, morning_groups),
        afternoon=foursomes(AFTERNOON, afternoon_groups),
    )
