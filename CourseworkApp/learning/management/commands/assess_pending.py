from django.core.management.base import BaseCommand

from CourseworkApp.core.exceptions import AlreadyAssessed, UpstreamFailure
from CourseworkApp.domain.services import assessment_service
from CourseworkApp.learning.models import Submission

class Command(BaseCommand):
    help = "Run the AI assessment for submitted work that has none yet."

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=None, help="Assess at most this many submissions.")

    def handle(self, *args, **options):
        pending = Submission.objects.awaiting_assessment().order_by("submitted_at").values_list("pk", flat=True)
        if options["limit"]:
            pending = pending[:options["limit"]]
        assessed = failed = 0
        for submission_id in list(pending):
            try:
                assessment_service.request_ai_assessment(submission_id)
            except UpstreamFailure as exc:
                failed += 1
                self.stderr.write(f"Submission {submission_id}: {exc.code}")
            except AlreadyAssessed:
                continue
            else:
                assessed += 1
        self.stdout.write(self.style.SUCCESS(f"Assessed {assessed} submissions, {failed} failed"))
