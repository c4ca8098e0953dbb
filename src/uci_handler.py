"""UCI protocol handler: parsing and shaping of engine wire text."""
import re

_MOVE_RE = re.compile(r'^([a-h][1-8])([a-h][1-8])([qrbn]?)$')


class UCIHandler:
    """Handles UCI protocol parsing and validation."""

    @staticmethod
    def validate_uci_move(move):
        """
        Validate a UCI move format on a standard 8x8 board.

        Args:
            move: String move in UCI format (e.g. 'e2e4', 'a7a8q')

        Returns:
            bool: True if valid UCI format, False otherwise
        """
        if not isinstance(move, str):
            return False
        return bool(_MOVE_RE.match(move.strip().lower()))

    @staticmethod
    def parse_info_line(line):
        """
        Parse an engine 'info' line into the fields the bot cares about.

        Lines without a 'depth' token (e.g. 'info string ...' or
        'info currmove ...') yield None.  The principal variation is the
        rest of the line after 'pv', since it is always the last field.

        Args:
            line: Raw engine output such as
                  'info depth 8 seldepth 10 score cp 31 nodes 1200 pv e2e4 e7e5'

        Returns:
            dict: {'depth': int, 'pv': ['e2e4', 'e7e5', ...]}
            None: If the line is not a search-progress record
        """
        tokens = line.split()
        if not tokens or tokens[0] != 'info' or 'string' in tokens[:2]:
            return None
        depth = None
        pv = []
        i = 1
        while i < len(tokens):
            tok = tokens[i]
            if tok == 'depth' and i + 1 < len(tokens):
                try:
                    depth = int(tokens[i + 1])
                except ValueError:
                    return None
                i += 2
                continue
            if tok == 'pv':
                pv = tokens[i + 1:]
                break
            i += 1
        if depth is None:
            return None
        return {'depth': depth, 'pv': pv}

    @staticmethod
    def parse_bestmove_line(line):
        """
        Extract the move from a 'bestmove' line.

        Returns:
            str: The move, or None for '(none)' / malformed lines.
        """
        parts = line.split()
        if len(parts) >= 2 and parts[0] == 'bestmove' and parts[1] != '(none)':
            return parts[1]
        return None

    @staticmethod
    def position_command(fen=None, moves=None):
        """
        Build a 'position' command.

        Args:
            fen:   Explicit board encoding; takes precedence when given.
            moves: Iterable of UCI moves played from the start position.

        Returns:
            str: Command terminated by a newline.
        """
        if fen:
            cmd = f"position fen {fen}"
        else:
            cmd = "position startpos"
        moves = [str(m) for m in (moves or [])]
        if moves:
            cmd += " moves " + " ".join(moves)
        return cmd + "\n"
