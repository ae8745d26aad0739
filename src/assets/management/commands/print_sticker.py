"""Print asset stickers on the Bluetooth label printer."""

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from assets.models import Asset
from assets.services.bluetooth import PrinterError
from assets.services.printing import print_stickers
from assets.services.sticker import build_sticker


class Command(BaseCommand):
    help = (
        "Print the TSPL sticker for one or more assets over a single "
        "Bluetooth connection, or dump the TSPL with --raw."
    )

    def add_arguments(self, parser):
        parser.add_argument("asset_ids", nargs="+", help="Asset UUIDs.")
        parser.add_argument(
            "--address",
            help="Printer Bluetooth address (default: discover by service).",
        )
        parser.add_argument(
            "--raw",
            action="store_true",
            help="Write the TSPL to stdout instead of printing.",
        )

    def handle(self, *args, **options):
        assets = []
        for asset_id in options["asset_ids"]:
            try:
                assets.append(Asset.objects.with_related().get(pk=asset_id))
            except Asset.DoesNotExist:
                raise CommandError(f"Asset '{asset_id}' does not exist.")
            except ValidationError:
                raise CommandError(f"Invalid asset id '{asset_id}'.")

        if options["raw"]:
            for asset in assets:
                self.stdout.write(build_sticker(asset), ending="")
            return

        try:
            count = print_stickers(assets, address=options.get("address"))
        except PrinterError as exc:
            raise CommandError(f"Printing failed: {exc}")
        self.stdout.write(self.style.SUCCESS(f"Printed {count} sticker(s)."))
