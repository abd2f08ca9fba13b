"""
"Simple URIs" are how the command line and the configuration file describe where
things run, for example:

    ssh:host=build-vm|user=ops|port=2222

The part before the colon is the scheme, the rest is a list of key=value pairs
separated by "|".
"""
from dataclasses import dataclass
from pathlib import Path


class SimpleURIError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True, eq=True)
class SimpleURI:
    scheme: str
    parameters: dict[str, str]

    def string_parameter(self, key: str) -> None | str:
        return self.parameters.get(key)

    def path_parameter(self, key: str) -> None | Path:
        result = self.parameters.get(key)
        if result is not None:
            return Path(result)
        return None

    def bool_parameter(self, key: str) -> None | bool:
        result = self.parameters.get(key)
        if result is None:
            return None
        return result.lower() == "true"

    def int_parameter(self, key: str) -> None | int:
        result = self.parameters.get(key)
        if result is None:
            return None
        try:
            return int(result)
        except ValueError:
            raise SimpleURIError(
                f'parameter "{key}" should be an integer, but got "{result}"'
            )


def parse_simple_uri(s: str) -> SimpleURI:
    match s.split(":", maxsplit=1):
        case [_]:
            raise SimpleURIError(
                "':' character not found in simple URI; expecting something like \"scheme:name=value|name2=value2\""
            )
        case [scheme, rest]:
            if not scheme.strip():
                raise SimpleURIError("scheme (what comes before ':') is empty")
            if not rest.strip():
                return SimpleURI(scheme.strip(), {})
            rest_parts: dict[str, str] = {}
            for rest_part_idx, rest_part in enumerate(rest.split("|")):
                match rest_part.split("=", maxsplit=1):  #  pyright: ignore
                    case [_]:
                        raise SimpleURIError(
                            f'argument {rest_part_idx}: cannot find \'=\' character, expected something like "key=value", but got "{rest_part}"'
                        )
                    case [key, value]:
                        if not key.strip():
                            raise SimpleURIError(
                                f'argument {rest_part_idx}: key seems to be empty, expected something like "key=value", but got "{rest_part}"'
                            )
                        if key.strip() in rest_parts:
                            raise SimpleURIError(
                                f'argument {rest_part_idx}: key "{key}" occurs more than once'
                            )
                        rest_parts[key.strip()] = value.strip()
            return SimpleURI(scheme.strip(), rest_parts)
        case _:
            raise SimpleURIError(f'got a weird string here, cannot parse "{s}"')
