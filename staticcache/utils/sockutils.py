import socket
from time import sleep
from typing import Tuple, Union


def bind_sock(
        sock: socket.socket,
        addr: Tuple[str, Union[int, str]],
        max_retries: int = 99999,
        retries_timeout: Union[int, float] = 3
) -> Tuple[bool, int]:
    """
    Tries to bind socket until success or until retries are exhausted.
    Returns whether socket was bound and how many attempts were made
    """

    for retry_num in range(1, max_retries + 1):
        try:
            sock.bind(addr)

            return True, retry_num
        except OSError:
            if retry_num != max_retries:
                sleep(retries_timeout)

    return False, max_retries
