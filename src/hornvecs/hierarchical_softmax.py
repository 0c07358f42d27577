"""Hierarchical Softmax implementation for hornvecs."""

import heapq
from typing import List, Sequence, Tuple

from hornvecs.losses import BinaryLogisticLoss, Prediction, sigmoid, std_log
from hornvecs.matrix import Matrix


class HuffmanTree:
    """Huffman tree for building binary hierarchy of output classes.

    As in word2vec:
    - Frequent classes get shorter binary codes (closer to root)
    - Less frequent classes get longer binary codes (farther from root)
    - Each internal node has an associated row in the output matrix

    Nodes ``0..n-1`` are the leaves (class ids) and nodes ``n..2n-2`` are
    internal; internal node ``i`` owns output row ``i - n``.
    """

    def __init__(self, counts: Sequence[int]):
        """Initialize Huffman tree from class frequencies.

        Args:
            counts: Frequency of each class, indexed by class id
        """
        self.num_leaves = len(counts)
        size = max(2 * self.num_leaves - 1, 0)
        self.parent = [-1] * size
        self.left = [-1] * size
        self.right = [-1] * size
        self.count = [0] * size
        self.binary = [False] * size

        self._build_tree(counts)
        self.paths, self.codes = self._compute_paths()

    @classmethod
    def from_arrays(
        cls,
        parent: List[int],
        left: List[int],
        right: List[int],
        count: List[int],
        binary: List[bool],
    ) -> "HuffmanTree":
        """Rebuild a tree from its persisted node arrays."""
        tree = cls.__new__(cls)
        tree.num_leaves = (len(parent) + 1) // 2 if parent else 0
        tree.parent = list(parent)
        tree.left = list(left)
        tree.right = list(right)
        tree.count = list(count)
        tree.binary = [bool(b) for b in binary]
        tree.paths, tree.codes = tree._compute_paths()
        return tree

    @property
    def num_inner_nodes(self) -> int:
        return max(self.num_leaves - 1, 0)

    @property
    def root(self) -> int:
        return len(self.parent) - 1

    def _build_tree(self, counts: Sequence[int]) -> None:
        """Merge the two lightest nodes until one root remains.

        Ties on count are broken by node id, so the tree only depends on the
        frequency distribution.
        """
        heap = []
        for leaf, c in enumerate(counts):
            self.count[leaf] = int(c)
            # heapq is a min-heap, so we store (count, tiebreaker, node)
            heapq.heappush(heap, (int(c), -leaf, leaf))

        next_inner_node = self.num_leaves
        while len(heap) > 1:
            count1, _, left = heapq.heappop(heap)
            count2, _, right = heapq.heappop(heap)

            node = next_inner_node
            self.count[node] = count1 + count2
            self.left[node] = left
            self.right[node] = right
            self.parent[left] = node
            self.parent[right] = node
            self.binary[right] = True
            heapq.heappush(heap, (count1 + count2, -node, node))
            next_inner_node += 1

    def _compute_paths(self) -> Tuple[List[List[int]], List[List[int]]]:
        """Root-to-leaf output rows and code bits for every leaf."""
        n = self.num_leaves
        paths, codes = [], []
        for leaf in range(n):
            path, code = [], []
            node = leaf
            while self.parent[node] != -1:
                path.append(self.parent[node] - n)
                code.append(int(self.binary[node]))
                node = self.parent[node]
            path.reverse()
            code.reverse()
            paths.append(path)
            codes.append(code)
        return paths, codes

    def code_length(self, leaf: int) -> int:
        return len(self.codes[leaf])


class HierarchicalSoftmaxLoss(BinaryLogisticLoss):
    """Hierarchical softmax over a Huffman tree of the output classes.

    The probability of a class is the product of sigmoid decisions along its
    root-to-leaf path, which reduces one update from O(V) to O(log V).
    """

    def __init__(self, wo: Matrix, counts: Sequence[int] = (), tree: HuffmanTree = None):
        """Initialize hierarchical softmax loss.

        Args:
            wo: Output matrix; row ``i`` belongs to internal node ``n + i``
            counts: Class frequencies used to build the tree
            tree: Prebuilt tree (used when loading a model)
        """
        super().__init__(wo)
        self.tree = tree if tree is not None else HuffmanTree(counts)

    def forward(self, targets, target_index, state, lr, backprop=True):
        target = targets[target_index]
        loss = 0.0
        for row, bit in zip(self.tree.paths[target], self.tree.codes[target]):
            loss += self.binary_logistic(row, state, bit == 1, lr, backprop)
        return loss

    def predict(self, k: int, threshold: float, state) -> List[Prediction]:
        """Best-first search for the ``k`` most probable leaves."""
        if self.tree.num_leaves == 0:
            return []
        heap: List[Tuple[float, int]] = []
        self._dfs(k, threshold, self.tree.root, 0.0, heap, state)
        results = [(score, -neg_leaf) for score, neg_leaf in heap]
        results.sort(key=lambda r: (-r[0], r[1]))
        return results

    def _dfs(self, k, threshold, node, score, heap, state) -> None:
        if score < std_log(threshold):
            return
        if len(heap) == k and score < heap[0][0]:
            return

        tree = self.tree
        if tree.left[node] == -1 and tree.right[node] == -1:
            heapq.heappush(heap, (score, -node))
            if len(heap) > k:
                heapq.heappop(heap)
            return

        f = sigmoid(self.wo.dot_row(state.hidden, node - tree.num_leaves))
        self._dfs(k, threshold, tree.left[node], score + std_log(1.0 - f), heap, state)
        self._dfs(k, threshold, tree.right[node], score + std_log(f), heap, state)
