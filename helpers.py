import random
import time

TIMESTAMP_SUFFIX_DIGITS = 5


def random_delay(low, high, rng=random):
    """Whole seconds in [low, high], both ends included."""
    return rng.randint(low, high)


def random_token_id(length=18, rng=random, now=time.time):
    # Leading digit is never zero so the id keeps its full width once it
    # becomes an integer.
    digits = [str(rng.randint(1, 9))]
    digits += [str(rng.randint(0, 9)) for _ in range(length - 1)]
    millis = str(int(now() * 1000))
    return int("".join(digits) + millis[-TIMESTAMP_SUFFIX_DIGITS:])
