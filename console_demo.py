"""
Offline console demo: onboards a provider and walks through a booking day.

Runs the real façade, slot generator and reservation coordinator over the
in-memory store. No server and no network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario race
"""

import argparse
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time, timedelta
from typing import Optional

from booking_engine.config import settings
from booking_engine.errors import EngineError
from booking_engine.schemas.booking_schema import BookingRequest
from booking_engine.schemas.schedule_schema import DayOfWeek
from booking_engine.schemas.slot_schema import TimeSlot
from booking_engine.service import AvailabilityService, build_service
from booking_engine.utils import format_time

BLUE = "\033[94m"
GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


def _next_monday(today: date) -> date:
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


class ConsoleDemo:
    """Drives the booking engine through a scripted provider day."""

    PROVIDER_ID = "demo-provider"

    def __init__(self, service: Optional[AvailabilityService] = None) -> None:
        self.service = service or build_service(settings)
        self.day = _next_monday(datetime.now().date())
        self.service_id = None

    def say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[engine]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def fail(self, exc: EngineError) -> None:
        print(f"{RED}{BOLD}[{exc.status_code}]{RESET} {RED}{exc.code}: {exc.message}{RESET}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  BOOKING ENGINE - {title}{RESET}")
        print(f"{BOLD}  {settings.scheduling.slot_granularity_minutes}-minute grid, "
              f"timezone {settings.timezone}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _show_slots(self, slots: list[TimeSlot]) -> None:
        for slot in slots:
            label = f"{format_time(slot.start_time)}-{format_time(slot.end_time)}"
            if slot.is_available:
                print(f"    {GREEN}{label}  available  ${slot.price:.2f}{RESET}")
            else:
                print(f"    {DIM}{label}  {slot.unavailable_reason.value}{RESET}")

    def setup(self) -> None:
        self.service.register_provider(self.PROVIDER_ID)
        self.service.set_schedule_day(
            self.PROVIDER_ID, DayOfWeek.MONDAY, True,
            time(9), time(18), time(12), time(13),
        )
        svc = self.service.add_service(self.PROVIDER_ID, "Haircut", 60, 45.0)
        self.service_id = svc.id
        self.say(f"Provider {self.PROVIDER_ID} onboarded; Monday 09:00-18:00, break 12:00-13:00")
        self.system_log(f"Service {svc.id}: {svc.name}, {svc.duration_minutes} min")

    def book(self, client_id: str, start: time, key: Optional[str] = None):
        request = BookingRequest(
            service_id=self.service_id,
            date=self.day,
            start_time=start,
            client_id=client_id,
            idempotency_key=key,
        )
        try:
            booking = self.service.create_booking(self.PROVIDER_ID, request)
        except EngineError as e:
            self.fail(e)
            return None
        self.say(f"{client_id} booked {format_time(booking.start_time)} -> {booking.id} ({booking.status.value})")
        return booking

    def run(self) -> None:
        self._banner("Walkthrough")
        self.setup()

        print(f"\n{BLUE}Slots on {self.day}:{RESET}")
        self._show_slots(self.service.get_available_slots(self.PROVIDER_ID, self.service_id, self.day))

        print(f"\n{BLUE}Booking 10:00 for client-a (with idempotency key):{RESET}")
        first = self.book("client-a", time(10), key="demo-key-1")
        self.system_log("Retrying the same request with the same key...")
        retry = self.book("client-a", time(10), key="demo-key-1")
        if first and retry:
            self.system_log(f"Same booking returned: {first.id == retry.id}")

        print(f"\n{BLUE}client-b tries 09:30 (runs into 10:00):{RESET}")
        self.book("client-b", time(9, 30))

        print(f"\n{BLUE}client-b tries 11:30 (runs into the break):{RESET}")
        self.book("client-b", time(11, 30))

        if first:
            print(f"\n{BLUE}client-a cancels:{RESET}")
            self.service.cancel_booking(first.id, "client-a")
            self.say(f"{first.id} cancelled; 10:00 is free again")
            try:
                self.service.cancel_booking(first.id, "client-a")
            except EngineError as e:
                self.fail(e)

        print(f"\n{BLUE}Slots on {self.day}:{RESET}")
        self._show_slots(self.service.get_available_slots(self.PROVIDER_ID, self.service_id, self.day))
        self._footer()

    def run_race(self, contenders: int = 8) -> None:
        """Fire concurrent reservations at the same slot; exactly one wins."""
        self._banner("Concurrent race")
        self.setup()
        barrier = threading.Barrier(contenders)

        def attempt(n: int):
            barrier.wait()
            return self.book(f"client-{n}", time(10))

        with ThreadPoolExecutor(max_workers=contenders) as pool:
            results = list(pool.map(attempt, range(contenders)))

        winners = [b for b in results if b is not None]
        self.system_log(f"{len(winners)} of {contenders} reservations committed")
        self._footer()

    def _footer(self) -> None:
        bookings = self.service.list_bookings(self.PROVIDER_ID, self.day, include_inactive=True)
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Ledger for {self.day}:{RESET}")
        for b in bookings:
            print(f"{DIM}  {b.id} {format_time(b.start_time)}-{format_time(b.end_time)} "
                  f"{b.client_id} {b.status.value}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Booking engine console demo")
    parser.add_argument(
        "--scenario",
        choices=["walkthrough", "race"],
        default="walkthrough",
        help="Run a pre-scripted scenario",
    )
    args = parser.parse_args()

    demo = ConsoleDemo()
    if args.scenario == "race":
        demo.run_race()
    else:
        demo.run()


if __name__ == "__main__":
    main()
