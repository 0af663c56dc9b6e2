"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    MATCHING = "MATCHING"
    ENROUTE = "ENROUTE"
    PICKUP = "PICKUP"
    CARRYING = "CARRYING"
    ARRIVED = "ARRIVED"
    COMPLETED = "COMPLETED"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.MATCHING: {RideStatus.ENROUTE},
    RideStatus.ENROUTE: {RideStatus.PICKUP},
    RideStatus.PICKUP: {RideStatus.CARRYING},
    RideStatus.CARRYING: {RideStatus.ARRIVED},
    RideStatus.ARRIVED: {RideStatus.COMPLETED},
    RideStatus.COMPLETED: set(),
}


class MatchOutcome(str, enum.Enum):
    """Result of a single matching attempt."""

    MATCHED = "MATCHED"
    NO_RIDE = "NO_RIDE"
    NO_CHAIR = "NO_CHAIR"
    FAILURE = "FAILURE"
