import argparse
import getpass
import json
import logging
from datetime import datetime

from tqdm import tqdm

from .client import NetflixClient, avatar_url
from .config import EXPORT_INDENT, NETFLIX_COOKIE, NETFLIX_EMAIL, NETFLIX_PASSWORD
from .exceptions import NetflixError, OperationError
from .models import Profile
from .session import Credentials

logger = logging.getLogger(__name__)


def _credentials(args: argparse.Namespace) -> Credentials:
    """Build credentials from arguments, then environment. A cookie wins over email/password."""
    cookie = getattr(args, "cookie", None) or NETFLIX_COOKIE
    if cookie:
        return Credentials(cookie=cookie)

    email = getattr(args, "email", None) or NETFLIX_EMAIL
    if not email:
        raise SystemExit("Provide --email or --cookie (or NETFLIX_EMAIL / NETFLIX_COOKIE)")
    password = getattr(args, "password", None) or NETFLIX_PASSWORD or getpass.getpass("Password: ")
    return Credentials(email=email, password=password)


def _find_profile(profiles: list[Profile], wanted: str) -> Profile:
    """Match a profile by guid or (case-insensitive) display name."""
    for profile in profiles:
        if profile.guid == wanted or profile.display_name.lower() == wanted.lower():
            return profile
    names = ", ".join(p.display_name for p in profiles)
    raise SystemExit(f"No profile named '{wanted}' (available: {names})")


def _open_session(args: argparse.Namespace) -> NetflixClient:
    client = NetflixClient()
    try:
        client.login(_credentials(args))
    except BaseException:
        client.close()
        raise
    return client


def _switch_to(client: NetflixClient, wanted: str | None) -> Profile | None:
    if not wanted:
        return None
    profile = _find_profile(client.get_profiles(), wanted)
    if not profile.is_active:
        client.switch_profile(profile.guid)
    return profile


def cmd_profiles(args: argparse.Namespace) -> None:
    """List the account's profiles."""
    with _open_session(args) as client:
        for profile in client.get_profiles():
            marker = "*" if profile.is_active else " "
            kids = " (kids)" if profile.is_kids else ""
            print(f"{marker} {profile.display_name}{kids}  {profile.guid}")


def cmd_export(args: argparse.Namespace) -> None:
    """Export a profile's ratings (and viewing history) to JSON."""
    with _open_session(args) as client:
        profile = _switch_to(client, args.profile)

        with tqdm(desc="Ratings", unit="page") as bar:
            ratings = client.get_rating_history(on_page=lambda _page: bar.update(1))

        viewing = []
        if args.include_history:
            with tqdm(desc="History", unit="page") as bar:
                viewing = client.get_viewing_history(on_page=lambda _page: bar.update(1))

    payload = {
        "profile": profile.display_name if profile else None,
        "exported_at": datetime.now().isoformat(),
        "ratings": [r.raw for r in ratings],
        "viewing_history": [v.raw for v in viewing],
    }
    with open(args.file, "w") as f:
        json.dump(payload, f, indent=EXPORT_INDENT or None)

    logger.info(f"Exported {len(ratings)} ratings and {len(viewing)} history items to {args.file}")


def cmd_import(args: argparse.Namespace) -> None:
    """Apply ratings from an export file to a profile."""
    with open(args.file, "r") as f:
        data = json.load(f)
    ratings = data.get("ratings", [])

    applied = 0
    failed = 0
    with _open_session(args) as client:
        _switch_to(client, args.profile)
        for item in tqdm(ratings, desc="Ratings"):
            title_id = item.get("movieID")
            try:
                if item.get("ratingType") == "thumb":
                    client.set_thumb_rating(title_id, item.get("intRating", item.get("yourRating")))
                else:
                    client.set_star_rating(title_id, item.get("yourRating"))
                applied += 1
            except OperationError as exc:
                failed += 1
                logger.warning(f"Could not rate '{item.get('title')}' ({title_id}): {exc}")

    logger.info(f"Imported {applied} ratings from {args.file} ({failed} failed)")


def cmd_hide_history(args: argparse.Namespace) -> None:
    """Hide viewing history entries."""
    if not args.all and not args.title_ids:
        raise SystemExit("Pass one or more title ids, or --all")

    with _open_session(args) as client:
        _switch_to(client, args.profile)
        if args.all:
            client.hide_all_viewing_history()
            logger.info("Hid the whole viewing history")
            return
        for title_id in args.title_ids:
            client.hide_viewing_history_item(title_id, series_all=args.series)
        logger.info(f"Hid {len(args.title_ids)} viewing history item(s)")


def cmd_avatar_url(args: argparse.Namespace) -> None:
    """Print the image URL of an avatar name."""
    print(avatar_url(args.avatar_name, args.size))


def _add_auth_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--email", help="Account email (default: NETFLIX_EMAIL)")
    parser.add_argument("--password", help="Account password (default: NETFLIX_PASSWORD, else prompt)")
    parser.add_argument("--cookie", help="Reuse a session cookie header instead of logging in")


def main():
    parser = argparse.ArgumentParser(description="Netflix session tools")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    profiles_parser = subparsers.add_parser("profiles", help="List profiles")
    _add_auth_arguments(profiles_parser)
    profiles_parser.set_defaults(func=cmd_profiles)

    export_parser = subparsers.add_parser("export", help="Export ratings and viewing history")
    export_parser.add_argument("file", help="Output JSON file")
    export_parser.add_argument("--profile", help="Profile name or guid (default: active profile)")
    export_parser.add_argument("--no-history", dest="include_history", action="store_false",
                               help="Skip the viewing history")
    _add_auth_arguments(export_parser)
    export_parser.set_defaults(func=cmd_export, include_history=True)

    import_parser = subparsers.add_parser("import", help="Import ratings from an export file")
    import_parser.add_argument("file", help="JSON file written by 'export'")
    import_parser.add_argument("--profile", help="Profile name or guid (default: active profile)")
    _add_auth_arguments(import_parser)
    import_parser.set_defaults(func=cmd_import)

    hide_parser = subparsers.add_parser("hide-history", help="Hide viewing history entries")
    hide_parser.add_argument("title_ids", nargs="*", type=int, help="Title ids to hide")
    hide_parser.add_argument("--all", action="store_true", help="Hide the whole history")
    hide_parser.add_argument("--series", action="store_true", help="Hide every episode of each title's series")
    hide_parser.add_argument("--profile", help="Profile name or guid (default: active profile)")
    _add_auth_arguments(hide_parser)
    hide_parser.set_defaults(func=cmd_hide_history)

    avatar_parser = subparsers.add_parser("avatar-url", help="Print an avatar image URL")
    avatar_parser.add_argument("avatar_name", help="Avatar name, e.g. icon26")
    avatar_parser.add_argument("--size", type=int, help="Image size in pixels")
    avatar_parser.set_defaults(func=cmd_avatar_url)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        args.func(args)
    except NetflixError as exc:
        logger.error(str(exc))
        raise SystemExit(1) from None


if __name__ == "__main__":
    main()
