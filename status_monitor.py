import logging
import threading
from typing import Any, Callable, Iterable, List, Optional, Protocol, Tuple, Union

from exceptions import UnknownStatusCode, WallboxError
from status import get_status_name, is_charging_class
from wallbox_client import WallboxClient

MONITORING_STARTED_TITLE = "Wallbox monitoring started"
NOW_CHARGING_BODY = "Charger is now charging."
STATUS_UPDATE_BODY = "Status update only."
DEFAULT_POLL_INTERVAL = 60.0


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None:
        ...


class StatusMonitor:
    """Polls one charger and notifies on status transitions.

    The monitor starts uninitialized. The first successful poll always sends a
    "monitoring started" notification; later polls notify only when the status
    code changes.
    """

    def __init__(
        self,
        client: WallboxClient,
        notifier: Notifier,
        charger_id: Union[int, str],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        stop_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            client: Wallbox API client
            notifier: Anything with ``notify(title, body)``
            charger_id: Charger to watch
            poll_interval: Seconds between polls
            stop_event: Event that ends the loop, shared between monitors
            sleep: Replacement for the interruptible wait between polls
        """
        self.client = client
        self.notifier = notifier
        self.charger_id = charger_id
        self.poll_interval = poll_interval
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self._sleep = sleep if sleep is not None else self.stop_event.wait
        self.previous: Optional[int] = None

    @property
    def tracking(self) -> bool:
        return self.previous is not None

    def stop(self) -> None:
        self.stop_event.set()

    def poll_once(self) -> Optional[Tuple[str, str]]:
        """Run one poll cycle.

        Returns:
            The (title, body) notification sent, or None.
        """
        try:
            current = self.client.get_status_code(self.charger_id)
            current_name = get_status_name(current)
        except UnknownStatusCode as e:
            logging.error(f"Charger {self.charger_id}: {e}. Skipping this cycle")
            return None
        except WallboxError as e:
            logging.error(f"Charger {self.charger_id}: status poll failed, skipping this cycle: {e}")
            return None

        previous = self.previous
        notification: Optional[Tuple[str, str]] = None
        if previous is None:
            logging.info(f"Charger {self.charger_id}: monitoring started, status {current_name}")
            notification = (
                MONITORING_STARTED_TITLE,
                f"Charger {self.charger_id} is {current_name}.",
            )
        elif previous == current:
            logging.debug(f"Charger {self.charger_id}: status unchanged ({current_name})")
        else:
            previous_name = get_status_name(previous)
            logging.info(f"Charger {self.charger_id}: {previous_name} -> {current_name}")
            notification = (
                f"{previous_name} -> {current_name}",
                self._transition_body(previous, current),
            )

        self.previous = current
        if notification is not None:
            try:
                self.notifier.notify(*notification)
            except Exception as e:
                logging.error(f"Charger {self.charger_id}: failed to deliver notification: {e}")
        return notification

    def _transition_body(self, previous: int, current: int) -> str:
        if is_charging_class(previous) and not is_charging_class(current):
            try:
                duration = self.client.get_last_charge_duration()
            except WallboxError as e:
                logging.error(f"Failed to get last charge duration: {e}")
                return "Charging finished, duration unavailable."
            return f"Charging finished after {duration}."
        if is_charging_class(current):
            return NOW_CHARGING_BODY
        return STATUS_UPDATE_BODY

    def run(self, max_cycles: Optional[int] = None) -> int:
        """Poll until stopped.

        Args:
            max_cycles: Stop after this many cycles. None runs until ``stop()``.

        Returns:
            The number of cycles run.
        """
        logging.info(
            f"Monitoring charger {self.charger_id} every {self.poll_interval}s"
        )
        cycles = 0
        while not self.stop_event.is_set():
            self.poll_once()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            if self.stop_event.is_set():
                break
            self._sleep(self.poll_interval)

        logging.info(f"Stopped monitoring charger {self.charger_id} after {cycles} cycles")
        return cycles


def monitor_chargers(
    client: WallboxClient,
    notifier: Notifier,
    charger_ids: Iterable[Union[int, str]],
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    stop_event: Optional[threading.Event] = None,
) -> List[StatusMonitor]:
    """Run one monitor thread per charger until ``stop_event`` is set.

    All monitors share ``client`` and therefore its token manager. Ctrl-C sets
    the stop event and waits for the monitors to finish their current cycle.
    """
    stop_event = stop_event if stop_event is not None else threading.Event()
    monitors = [
        StatusMonitor(client, notifier, charger_id, poll_interval, stop_event=stop_event)
        for charger_id in charger_ids
    ]
    threads = [
        threading.Thread(target=monitor.run, name=f"charger-{monitor.charger_id}", daemon=True)
        for monitor in monitors
    ]
    for thread in threads:
        thread.start()

    try:
        for thread in threads:
            while thread.is_alive():
                thread.join(timeout=0.5)
    except KeyboardInterrupt:
        logging.info("Interrupted, stopping monitors...")
        stop_event.set()
        for thread in threads:
            thread.join()
    return monitors
