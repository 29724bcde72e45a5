import math

MS_PER_MINUTE = 60000

# Time accrued by a single item at `now`, in ms. Active items add the open interval on top of what's banked. No clamp: a
# start_time in the future yields less than the banked value.
def current_elapsed(item, now):
    if item.is_active and item.start_time is not None:
        return item.elapsed + (now - item.start_time)
    return item.elapsed

# Meeting-wide elapsed ms. Completed items count their committed actual time so totals stop moving once closed.
def total_elapsed(items, now):
    total = 0
    for item in items:
        if item.actual_minutes is not None:
            total += item.actual_minutes * MS_PER_MINUTE
        else:
            total += current_elapsed(item, now)
    return total

def total_estimated(items):
    return sum(item.estimated_minutes * MS_PER_MINUTE for item in items)

# Converts ms to minutes rounded to one decimal, half-up (2.05 -> 2.1), matching how actual times are recorded.
def round_minutes(ms):
    return math.floor(ms / MS_PER_MINUTE * 10 + 0.5) / 10

# Remaining ms against the estimate; negative once the item is in overtime.
def remaining(item, now):
    return item.estimated_minutes * MS_PER_MINUTE - current_elapsed(item, now)

def is_overtime(item, now):
    if item.actual_minutes is not None:
        return item.actual_minutes > item.estimated_minutes
    return current_elapsed(item, now) > item.estimated_minutes * MS_PER_MINUTE

def all_complete(items):
    return len(items) > 0 and all(item.is_completed for item in items)

# Share of items already completed, 0-100.
def progress_percent(items):
    if not items:
        return 0.0
    done = sum(1 for item in items if item.is_completed)
    return done / len(items) * 100
