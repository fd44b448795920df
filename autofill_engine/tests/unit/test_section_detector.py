import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../..')))

from autofill_engine.core.models import FieldDescriptor
from autofill_engine.core.section_detector import detect_group_type, detect_sections, section_for_field
from autofill_engine.core.taxonomy import GroupType, Taxonomy


def field(index, label, section=""):
    return FieldDescriptor(index=index, label_text=label, section_title=section)


class TestSectionDetector(unittest.TestCase):
    """Tests for repeated-block grouping."""

    def test_adjacent_blocks_with_same_title(self):
        fields = [
            field(0, "First name"),
            field(1, "Company", "Work Experience"),
            field(2, "Job Title", "Work Experience"),
            field(3, "Company", "Work Experience"),
            field(4, "Job Title", "Work Experience"),
        ]
        types = {0: Taxonomy.FIRST_NAME, 1: Taxonomy.COMPANY_NAME, 2: Taxonomy.JOB_TITLE,
                 3: Taxonomy.COMPANY_NAME, 4: Taxonomy.JOB_TITLE}

        sections = detect_sections(fields, types)

        grouped = [s for s in sections if s.group_type is not None]
        self.assertEqual([s.group_type for s in grouped], [GroupType.WORK, GroupType.WORK])
        self.assertEqual([s.block_index for s in grouped], [0, 1])
        self.assertTrue(all(s.is_repeating_block for s in grouped))
        self.assertEqual(section_for_field(sections, 3).block_index, 1)
        self.assertIsNone(section_for_field(sections, 0))

    def test_numbered_titles(self):
        fields = [
            field(0, "Employer", "Experience 1"),
            field(1, "Employer", "Experience 2"),
            field(2, "School", "Education"),
        ]
        types = {0: Taxonomy.COMPANY_NAME, 1: Taxonomy.COMPANY_NAME, 2: Taxonomy.SCHOOL}

        sections = detect_sections(fields, types)

        self.assertEqual([(s.group_type, s.block_index) for s in sections],
                         [(GroupType.WORK, 0), (GroupType.WORK, 1), (GroupType.EDUCATION, 0)])
        self.assertFalse(sections[2].is_repeating_block)

    def test_group_inferred_from_field_types(self):
        fields = [field(0, "Institution"), field(1, "Qualification")]
        types = {0: Taxonomy.SCHOOL, 1: Taxonomy.DEGREE}
        self.assertEqual(detect_group_type("", fields, types), GroupType.EDUCATION)

    def test_project_title_wins_over_experience(self):
        self.assertEqual(detect_group_type("Project Experience", [], {}), GroupType.PROJECT)
        self.assertEqual(detect_group_type("项目经历", [], {}), GroupType.PROJECT)
        self.assertEqual(detect_group_type("工作经历", [], {}), GroupType.WORK)

    def test_shared_types_alone_do_not_group(self):
        fields = [field(0, "Start"), field(1, "End")]
        types = {0: Taxonomy.START_DATE, 1: Taxonomy.END_DATE}
        self.assertIsNone(detect_group_type("", fields, types))

    def test_personal_fields_stay_ungrouped(self):
        fields = [field(0, "Email"), field(1, "Phone")]
        sections = detect_sections(fields, {0: Taxonomy.EMAIL, 1: Taxonomy.PHONE})
        self.assertEqual(len(sections), 1)
        self.assertIsNone(sections[0].group_type)
        self.assertEqual(sections[0].block_index, 0)

    def test_sections_keep_scan_order(self):
        fields = [field(0, "School", "Education"), field(1, "Company", "Employment"),
                  field(2, "School", "Education ")]
        sections = detect_sections(fields, {0: Taxonomy.SCHOOL, 1: Taxonomy.COMPANY_NAME, 2: Taxonomy.SCHOOL})
        self.assertEqual([s.fields[0].index for s in sections], [0, 1, 2])
        self.assertEqual([s.block_index for s in sections], [0, 0, 1])


if __name__ == "__main__":
    unittest.main()
