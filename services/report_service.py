import os
import time

from artifacts.report_writer import write_csv_and_summary


class ReportService:
    def produce(self, session, report_dir: str):
        os.makedirs(report_dir, exist_ok=True)
        stamp = time.strftime("%Y%m%d_%H%M%S")
        csv_path = os.path.join(report_dir, f"optimize_{stamp}_items.csv")
        summary_path = os.path.join(report_dir, f"optimize_{stamp}_summary.txt")

        write_csv_and_summary(session, csv_path, summary_path)
        return {"csv": csv_path, "summary": summary_path}
