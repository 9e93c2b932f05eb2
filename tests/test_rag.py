import unittest
from unittest.mock import MagicMock

from agentflow.rag import RAGService, split_text


class TestSplitText(unittest.TestCase):
    def test_short_text_is_one_chunk(self):
        self.assertEqual(split_text("  hello world  "), ["hello world"])
        self.assertEqual(split_text(""), [])

    def test_chunks_respect_size(self):
        text = "\n\n".join(f"Paragraph {i} " + "word " * 40 for i in range(10))
        chunks = split_text(text, chunk_size=300, chunk_overlap=50)

        self.assertGreater(len(chunks), 1)
        self.assertTrue(all(len(c) <= 300 for c in chunks))
        self.assertIn("Paragraph 0", chunks[0])
        self.assertIn("Paragraph 9", chunks[-1])

    def test_consecutive_chunks_overlap(self):
        text = " ".join(f"w{i}" for i in range(200))
        chunks = split_text(text, chunk_size=100, chunk_overlap=30)

        self.assertGreater(len(chunks), 1)
        for first, second in zip(chunks, chunks[1:]):
            self.assertIn(first.split()[-1], second.split())

    def test_unbreakable_text(self):
        chunks = split_text("x" * 250, chunk_size=100, chunk_overlap=0)
        self.assertEqual([len(c) for c in chunks], [100, 100, 50])


class TestRAGService(unittest.TestCase):
    def setUp(self):
        self.collection = MagicMock()
        self.client = MagicMock()
        self.client.get_or_create_collection.return_value = self.collection
        self.rag = RAGService(client=self.client, embedding_function=MagicMock())

    def test_add_documents(self):
        added = self.rag.add_documents(
            [{"content": "short note", "metadata": {"source": "note.txt"}}, {"content": "   "}],
            collection="kb",
        )

        self.assertEqual(added, 1)
        kwargs = self.collection.add.call_args.kwargs
        self.assertEqual(kwargs["documents"], ["short note"])
        self.assertEqual(kwargs["metadatas"], [{"source": "note.txt", "chunkIndex": 0, "totalChunks": 1}])
        self.assertEqual(self.client.get_or_create_collection.call_args.kwargs["name"], "kb")

    def test_query_scores(self):
        self.collection.count.return_value = 2
        self.collection.query.return_value = {
            "documents": [["alpha", "beta"]],
            "metadatas": [[{"source": "a.txt"}, None]],
            "distances": [[0.1, 0.4]],
        }

        hits = self.rag.query("alpha?", k=5)

        self.assertEqual(self.collection.query.call_args.kwargs["n_results"], 2)
        self.assertEqual([h["content"] for h in hits], ["alpha", "beta"])
        self.assertAlmostEqual(hits[0]["score"], 0.9)
        self.assertEqual(hits[1]["metadata"], {})

    def test_query_empty_collection(self):
        self.collection.count.return_value = 0
        self.assertEqual(self.rag.query("anything"), [])
        self.collection.query.assert_not_called()

    def test_status(self):
        self.collection.count.return_value = 1
        self.collection.peek.return_value = {"documents": ["hello"], "metadatas": [{"source": "h.txt"}]}

        status = self.rag.status()

        self.assertEqual(status["documentCount"], 1)
        self.assertEqual(status["sampleDocuments"], [{"content": "hello", "metadata": {"source": "h.txt"}}])


if __name__ == "__main__":
    unittest.main()
