import argparse
import signal
import sys
from PySide6.QtCore import QCoreApplication, QTimer
from mt.app import MeetingTracker
from mt.common.logger import log
from mt.core.elapsed import is_overtime, progress_percent
from mt.core.report import MeetingSummary, format_clock, format_minutes

#region === Output helpers ===

def eprint(*args):
    print(*args, file=sys.stderr)

# Finds an item by 1-based position or by id.
def _resolve_item(session, ref):
    items = session.items
    if ref.isdigit() and 1 <= int(ref) <= len(items):
        return items[int(ref) - 1]
    return session.item(ref)

def _print_status(tracker):
    session = tracker.session
    items = session.items
    done = sum(1 for item in items if item.is_completed)
    print(f"Meeting: {session.state.value} ({len(items)} items, {done} completed, {progress_percent(items):.0f}%)")
    for n, item in enumerate(items, start=1):
        if item.is_completed:
            mark, detail = "x", f"{format_minutes(item.actual_minutes)} actual"
        elif item.is_active:
            mark, detail = ">", f"{format_clock(tracker.current_elapsed(item))} elapsed"
        else:
            mark = " "
            detail = f"{format_clock(item.elapsed)} banked" if item.elapsed else ""
        over = "  OVERTIME" if is_overtime(item, tracker.current_time) else ""
        print(f"  {n:>2}. [{mark}] {item.name:<30} {format_minutes(item.estimated_minutes):>6} est  {detail}{over}")
    print(f"Total {format_clock(tracker.total_elapsed)} / {format_clock(tracker.total_estimated)}")

def _print_summary(summary):
    print(f"Meeting {summary.meeting_id} on {summary.date}")
    for row in summary.rows:
        accuracy = "-" if row.accuracy is None else f"{row.accuracy}%"
        print(f"  {row.name:<30} {format_minutes(row.estimated_minutes):>6} est {format_minutes(row.actual_minutes):>6} actual "
              f"{row.difference:>7} {accuracy:>5}")
    print(f"Total {format_minutes(summary.total_estimated_minutes)} est, {format_minutes(summary.total_actual_minutes)} actual "
          f"({summary.total_difference})")

#endregion === Output helpers ===

#region === Commands ===

def _cmd_status(tracker, args):
    _print_status(tracker)
    return True

def _cmd_simple(name):
    def run(tracker, args):
        changed = getattr(tracker.session, name)()
        if changed:
            _print_status(tracker)
        return changed
    return run

def _cmd_add(tracker, args):
    return tracker.session.add_item(args.name, args.minutes) is not None

def _cmd_edit(tracker, args):
    item = _resolve_item(tracker.session, args.item)
    return item is not None and tracker.session.edit_item(item.id, name=args.name, estimated_minutes=args.minutes)

def _cmd_delete(tracker, args):
    item = _resolve_item(tracker.session, args.item)
    return item is not None and tracker.session.delete_item(item.id)

def _cmd_move(tracker, args):
    item = _resolve_item(tracker.session, args.item)
    return item is not None and tracker.session.move_item(item.id, args.position - 1)

def _cmd_save(tracker, args):
    result = tracker.save_meeting()
    if result is None:
        return False
    if not result.ok:
        eprint(f"History could not be written ({result.status.value}), the meeting is still in progress.")
    _print_summary(MeetingSummary.of(result.value))
    return True

def _cmd_history(tracker, args):
    if not tracker.history.meetings:
        print("No meetings in history.")
    for n, meeting in enumerate(tracker.history.meetings, start=1):
        print(f"  {n:>2}. {meeting.date}  {len(meeting.agenda_items)} items  "
              f"{format_minutes(meeting.total_actual_minutes)} / {format_minutes(meeting.total_estimated_minutes)}")
    return True

def _meeting_at(tracker, position):
    meetings = tracker.history.meetings
    if 1 <= position <= len(meetings):
        return meetings[position - 1]
    return None

def _cmd_report(tracker, args):
    meeting = _meeting_at(tracker, args.position)
    if meeting is None:
        return False
    _print_summary(MeetingSummary.of(meeting))
    return True

def _cmd_load(tracker, args):
    meeting = _meeting_at(tracker, args.position)
    return meeting is not None and tracker.load_meeting(meeting.id)

def _cmd_sample(tracker, args):
    return tracker.load_sample()

# Runs a Qt event loop printing the meeting clock every tick until interrupted (or --seconds runs out).
def _cmd_watch(tracker, args):
    if not tracker.clock.running:
        print("Meeting is not running, nothing to watch.")
        return True
    app = QCoreApplication.instance()
    tracker.clock.ticked.connect(lambda _now: print(
        f"\r{format_clock(tracker.total_elapsed)} / {format_clock(tracker.total_estimated)}", end="", flush=True))
    # Python only sees SIGINT between ticks, so Ctrl+C lands within a second
    previous_handler = signal.signal(signal.SIGINT, lambda *_: app.quit())
    if args.seconds:
        QTimer.singleShot(int(args.seconds * 1000), app.quit)
    try:
        app.exec()
    finally:
        signal.signal(signal.SIGINT, previous_handler)
    print()
    return True

#endregion === Commands ===

def build_parser():
    ap = argparse.ArgumentParser(prog="mt", description="Track time spent on each agenda item of a meeting.")
    sub = ap.add_subparsers(dest="command")

    sub.add_parser("status", help="Show the current meeting (default)").set_defaults(func=_cmd_status)
    sub.add_parser("start", help="Start or resume the meeting").set_defaults(func=_cmd_simple("start"))
    sub.add_parser("pause", help="Pause the meeting").set_defaults(func=_cmd_simple("pause"))
    sub.add_parser("next", help="Complete the active item and move on").set_defaults(func=_cmd_simple("advance"))
    sub.add_parser("previous", help="Step back to the previous item").set_defaults(func=_cmd_simple("previous"))
    sub.add_parser("reset", help="Clear all progress").set_defaults(func=_cmd_simple("reset"))

    p = sub.add_parser("add", help="Append an agenda item")
    p.add_argument("name")
    p.add_argument("minutes", type=float)
    p.set_defaults(func=_cmd_add)

    p = sub.add_parser("edit", help="Rename or re-estimate an item")
    p.add_argument("item", help="1-based position or item id")
    p.add_argument("--name", default=None)
    p.add_argument("--minutes", type=float, default=None)
    p.set_defaults(func=_cmd_edit)

    p = sub.add_parser("delete", help="Remove an untouched item")
    p.add_argument("item", help="1-based position or item id")
    p.set_defaults(func=_cmd_delete)

    p = sub.add_parser("move", help="Move an item to a new 1-based position")
    p.add_argument("item", help="1-based position or item id")
    p.add_argument("position", type=int)
    p.set_defaults(func=_cmd_move)

    sub.add_parser("save", help="Archive completed items to history").set_defaults(func=_cmd_save)
    sub.add_parser("history", help="List archived meetings").set_defaults(func=_cmd_history)

    p = sub.add_parser("report", help="Retrospective for an archived meeting")
    p.add_argument("position", type=int, nargs="?", default=1, help="1 = most recent (default)")
    p.set_defaults(func=_cmd_report)

    p = sub.add_parser("load", help="Reuse an archived meeting's agenda")
    p.add_argument("position", type=int, nargs="?", default=1)
    p.set_defaults(func=_cmd_load)

    sub.add_parser("sample", help="Replace the agenda with the sample agenda").set_defaults(func=_cmd_sample)

    p = sub.add_parser("watch", help="Show a live clock while the meeting runs")
    p.add_argument("--seconds", type=float, default=None, help="Stop after this many seconds")
    p.set_defaults(func=_cmd_watch)
    return ap

def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.command is None:
        args.func = _cmd_status
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    log.debug(f"Running '{args.command or 'status'}' under {app.applicationName() or 'mt'}")
    with MeetingTracker() as tracker:
        ok = args.func(tracker, args)
    if not ok:
        eprint(f"Nothing changed: '{args.command}' doesn't apply to the meeting as it stands.")
        return 1
    return 0

# Entry point for `python -m mt`
def run() -> None:
    try:
        sys.exit(main())
    except SystemExit:
        raise
    except Exception:
        # Full stack trace, always
        log.exception("Uncaught exception in entrypoint, exiting")
        sys.exit(1)

if __name__ == "__main__":
    run()
