"""Source payloads shared by the test suite."""

GOOD_SOURCE = b'VALUE = 42\n\ndef greet(name):\n    return f"hello {name}"\n'
NEWER_SOURCE = b'VALUE = 43\n\ndef greet(name):\n    return f"hi {name}"\n'
OTHER_SOURCE = b"VALUE = 7\n"
