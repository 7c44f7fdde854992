import time

import numpy as np


def pp_time(seconds_remaining, space=5):
    """
    Pretty prints the given time in the largest useful unit
    :param seconds_remaining: The number of seconds to be pretty printed
    :param space: The number of characters the number should take
    """
    time_counters = [
        ("s", 60),
        ("m", 60),
        ("h", 24),
        ("d", 30),
    ]
    time_remaining = seconds_remaining
    for s, t in time_counters:
        if time_remaining > t:
            time_remaining /= t
        else:
            return f"{time_remaining: {space}.2f}{s}"
    return f"{time_remaining: {space}.2f} months"


class ProgressTracker:
    """
    Reports the percentage of records decoded so far.
    Estimates the time remaining assuming every record takes the same time to decode.
    Can be used as a context manager where the update function is assigned to the named variable.
    Example:
    with ProgressTracker(len(records), label="Reading samples", print_func=logger.info) as pt:
        for i, record in enumerate(records, start=1):
            decode(record)
            pt(i)
    """

    def __init__(self, n_items, percent_increment=10, print_func=print, label=""):
        """
        :param n_items: the number of items to be worked on
        :param percent_increment: Output when the percent complete first hits each integer multiple of this value
        :param print_func: The function to call when outputting the progress, usually a logger method
        :param label: Prefix of every progress message
        """
        self.n_items = n_items
        self.percent_increment = percent_increment
        self.current_increment = percent_increment
        self.label = label
        self.started = False
        self.times = []
        self.print_func = print_func

    def __enter__(self):
        self._start()
        return self.update

    def _start(self):
        if not self.started:
            self.times.append(time.time())
            self.started = True

    def __exit__(self, exc_type, exc_val, exc_tb):
        # only report completion if the work actually completed
        if exc_type is None:
            self.update(self.n_items)
        self._stop()

    def _stop(self):
        """
        Converts the list of absolute times to an array of times relative to the start time
        """
        self.times = np.asarray(self.times) - self.times[0]

    def update(self, update_index):
        """
        Updates the tracker with the number of items completed so far
        Outputs the percent completion, time elapsed and estimated time remaining once per increment
        """
        if not self.started:
            self._start()
        if self.n_items == 0:
            return

        percent_done = 100 * update_index / self.n_items
        if percent_done >= self.current_increment:
            self.times.append(time.time())
            while percent_done >= self.current_increment:
                self.current_increment += self.percent_increment

            elapsed_time = self.times[-1] - self.times[0]
            remaining_time = elapsed_time * self.n_items / update_index - elapsed_time
            self.print_func(
                f"{self.label} {percent_done:5.1f}% complete. "
                f"Time elapsed: {pp_time(elapsed_time)}. Time remaining: {pp_time(remaining_time)}."
            )
