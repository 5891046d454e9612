from typing import Optional, Protocol

class AppHooks(Protocol):
    """
    Callbacks a host application supplies to follow a prediction scan.

    The service calls report_step as rules complete and polls
    stop_requested between phases; returning True cancels the scan before
    any prediction is written.
    """
    def report_step(self, info: Optional[str] = None, target: Optional[int] = None,
                    reset_counter: bool = False, plus_step: int = 1) -> None:
        """
        Receive a progress update.

        Args:
            info (str): What the scan is doing now.
            target (int): Total number of steps expected, when known.
            reset_counter (bool): Start counting from zero again.
            plus_step (int): Steps completed since the last call.
        """
        ...

    def stop_requested(self) -> bool:
        """
        Returns:
            bool: True to cancel the running scan or bulk accept.
        """
        ...
